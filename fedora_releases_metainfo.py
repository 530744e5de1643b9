"""Script that fetches the Fedora release history and puts it in an AppStream metainfo file"""

import argparse
import datetime
import json
import logging
import re
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional

import requests

# === CONFIGURATION ===
PKGDB_URL = "https://admin.fedoraproject.org/pkgdb/api/collections/"
SCHEDULE_URL = "https://fedorapeople.org/groups/schedule/f-{version}/f-{version}-all-milestones.json"
OUTPUT_FILE = "org.fedoraproject.fedora.metainfo.xml"
TIMEOUT = 30  # seconds, per request

# === HEADERS ===
HEADERS = {
    "Accept": "application/json",
    "User-Agent": "fedora-releases-metainfo/1.0",
}

# === COMPONENT ===
COMPONENT_TYPE = "operating-system"
COMPONENT_ID = "org.fedoraproject.fedora"
COMPONENT_NAME = "Fedora Linux"
COMPONENT_SUMMARY = "Fedora Linux distribution from the Fedora Project"
COMPONENT_DESCRIPTION = (
    "Fedora creates an innovative, free, and open source platform for hardware, "
    "clouds, and containers that enables software developers and community members "
    "to build tailored solutions for their users."
)
HOMEPAGE_URL = "https://fedoraproject.org/"
METADATA_LICENSE = "MIT"
DEVELOPER_NAME = "The Fedora Project"

RAWHIDE_DESCRIPTION = (
    "This is the current version for Rawhide, which is a continuous rolling "
    "development branch. No releases are ever made directly from Rawhide, and it "
    "never freezes. There is no guarantee of stability. Rawhide is intended for "
    "initial testing of the very latest code under active development."
)
UPCOMING_DESCRIPTION = "The upcoming release of Fedora Linux."
ANNOUNCEMENT_URL = "https://fedoramagazine.org/announcing-fedora-{version}/"

RELEASE_MILESTONE = "Current Final Target date"
EOL_MILESTONE = "EOL"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
DECIMAL = re.compile(r"[+-]?[0-9]+")

logger = logging.getLogger(__name__)


# === ERRORS ===
class MetainfoError(Exception):
    """Base class for every condition that aborts a run."""


class FetchError(MetainfoError):
    pass


class CollectionsParseError(MetainfoError):
    pass


class InvalidCollectionsError(MetainfoError):
    pass


class ScheduleError(MetainfoError):
    pass


class UnknownStatusError(MetainfoError):
    pass


class TimestampError(MetainfoError):
    pass


class OutputError(MetainfoError):
    pass


# === MODELS ===
@dataclass
class Config:
    """Endpoints and output settings for one run.

    ``tz`` is the time zone milestone timestamps are converted in;
    None means the local system time zone.
    """
    collections_url: str = PKGDB_URL
    schedule_url: str = SCHEDULE_URL
    output: str = OUTPUT_FILE
    tz: Optional[datetime.tzinfo] = None


@dataclass
class Collection:
    """One release branch as listed by the package database."""
    name: str = ""
    version: str = ""
    status: str = ""
    branchname: str = ""
    dist_tag: str = ""
    koji_name: str = ""
    date_created: str = ""
    date_updated: str = ""
    allow_retire: bool = False


@dataclass
class CollectionSet:
    collections: list[Collection]
    output: str


@dataclass
class Task:
    name: str = ""
    type: str = ""
    start: str = ""
    end: str = ""
    slug: str = ""


@dataclass
class ScheduleDocument:
    name: str = ""
    slug: str = ""
    start: str = ""
    end: str = ""
    tasks: list[Task] = field(default_factory=list)


@dataclass(frozen=True)
class Release:
    version: str
    type: str
    description: str
    date: str = ""
    date_eol: str = ""


@dataclass
class Component:
    releases: list[Release]
    type: str = COMPONENT_TYPE
    id: str = COMPONENT_ID
    name: str = COMPONENT_NAME
    summary: str = COMPONENT_SUMMARY
    description: str = COMPONENT_DESCRIPTION
    homepage: str = HOMEPAGE_URL
    metadata_license: str = METADATA_LICENSE
    developer_name: str = DEVELOPER_NAME


# === FETCH ===
def get_json(url: str, timeout: int = TIMEOUT) -> bytes:
    """GET ``url`` and return the raw body.

    The status code is not checked: whatever body comes back is handed to
    the JSON decoder.
    """
    try:
        response = requests.get(url, headers=HEADERS, timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(f"Error fetching {url}: {e}") from e
    if response.status_code != 200:
        logger.warning("Unexpected status %s from %s", response.status_code, url)
    return response.content


def fetch(source: Optional[str] = None, url: str = PKGDB_URL, timeout: int = TIMEOUT) -> bytes:
    """Read the collections document from ``source`` if given, else from ``url``."""
    if source is not None:
        logger.info("Reading collections from %s", source)
        try:
            with open(source, "rb") as f:
                return f.read()
        except OSError as e:
            raise FetchError(f"Error reading {source}: {e}") from e
    logger.info("Fetching collections from %s", url)
    return get_json(url, timeout=timeout)


# === PARSE ===
def _load(body: bytes, error: type, what: str) -> dict:
    try:
        data = json.loads(body)
    except (ValueError, RecursionError) as e:
        raise error(f"Invalid JSON in {what}: {e}") from e
    if not isinstance(data, dict):
        raise error(f"Expected a JSON object in {what}")
    return data


def _get(data: dict, key: str, kind: type, error: type):
    value = data.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise error(f"Field {key!r} should be {kind.__name__}, got {value!r}")
    return value


def _records(data: dict, key: str, error: type) -> list[dict]:
    records = _get(data, key, list, error)
    for record in records:
        if not isinstance(record, dict):
            raise error(f"Entries of {key!r} should be objects, got {record!r}")
    return records


def parse_collections(body: bytes) -> CollectionSet:
    """Decode the package database response and check its status field."""
    err = CollectionsParseError
    data = _load(body, err, "collections document")
    collections = [
        Collection(
            name=_get(c, "name", str, err),
            version=_get(c, "version", str, err),
            status=_get(c, "status", str, err),
            branchname=_get(c, "branchname", str, err),
            dist_tag=_get(c, "dist_tag", str, err),
            koji_name=_get(c, "koji_name", str, err),
            date_created=_get(c, "date_created", str, err),
            date_updated=_get(c, "date_updated", str, err),
            allow_retire=_get(c, "allow_retire", bool, err),
        )
        for c in _records(data, "collections", err)
    ]
    collection_set = CollectionSet(collections=collections, output=_get(data, "output", str, err))
    if collection_set.output != "ok":
        raise InvalidCollectionsError("Invalid value for output in JSON document")
    return collection_set


def parse_schedule(body: bytes) -> ScheduleDocument:
    err = ScheduleError
    data = _load(body, err, "schedule document")
    tasks = [
        Task(
            name=_get(t, "name", str, err),
            type=_get(t, "type", str, err),
            start=_get(t, "start", str, err),
            end=_get(t, "end", str, err),
            slug=_get(t, "slug", str, err),
        )
        for t in _records(data, "tasks", err)
    ]
    return ScheduleDocument(
        name=_get(data, "name", str, err),
        slug=_get(data, "slug", str, err),
        start=_get(data, "start", str, err),
        end=_get(data, "end", str, err),
        tasks=tasks,
    )


# === FILTER ===
def is_wanted(collection: Collection) -> bool:
    """Tell whether a collection belongs in the release history.

    Versions are compared as strings, so under the old "Fedora" name only
    versions sorting in ["30", "35") are kept.
    """
    if collection.name not in ("Fedora", "Fedora Linux"):
        return False
    # Ignore too old versions
    if collection.name == "Fedora" and collection.version < "30":
        return False
    # Ignore duplicates following the rename to Fedora Linux
    if collection.name == "Fedora" and collection.version >= "35":
        return False
    return True


def filter_collections(collections: list[Collection]) -> list[Collection]:
    wanted = []
    for collection in collections:
        if is_wanted(collection):
            wanted.append(collection)
        else:
            logger.debug("Skipping %s %s", collection.name, collection.version)
    return wanted


# === SCHEDULE ===
def find_milestone(schedule: ScheduleDocument, name: str) -> Optional[Task]:
    for task in schedule.tasks:
        if task.name == name and task.type == "Milestone":
            return task
    return None


def milestone_date(task: Task, tz: Optional[datetime.tzinfo] = None) -> str:
    """Format the task start (epoch seconds) as YYYY-MM-DD in ``tz``, local time if None."""
    if not DECIMAL.fullmatch(task.start):
        raise TimestampError(f"Invalid start {task.start!r} for task {task.name!r}")
    try:
        moment = datetime.datetime.fromtimestamp(int(task.start), tz)
    except (OverflowError, OSError, ValueError) as e:
        raise TimestampError(f"Out of range start {task.start!r} for task {task.name!r}") from e
    return moment.strftime("%Y-%m-%d")


def resolve_dates(
    version: str,
    with_eol: bool = False,
    url_template: str = SCHEDULE_URL,
    tz: Optional[datetime.tzinfo] = None,
) -> tuple[str, str]:
    """Return the (release, end of life) dates from the schedule of ``version``.

    A date whose milestone is missing from the schedule comes back empty.
    The end of life date is only looked up when ``with_eol`` is set.
    """
    url = url_template.format(version=version)
    logger.info("Fetching schedule for Fedora %s", version)
    schedule = parse_schedule(get_json(url))

    date = ""
    task = find_milestone(schedule, RELEASE_MILESTONE)
    if task is not None:
        date = milestone_date(task, tz)

    date_eol = ""
    if with_eol:
        task = find_milestone(schedule, EOL_MILESTONE)
        if task is not None:
            date_eol = milestone_date(task, tz)

    logger.debug("Fedora %s: date=%r date_eol=%r", version, date, date_eol)
    return date, date_eol


# === MAP ===
def map_release(collection: Collection, config: Optional[Config] = None) -> Release:
    config = config or Config()
    if collection.version == "devel":
        return Release(version="Rawhide", type="development", description=RAWHIDE_DESCRIPTION)
    if collection.status == "Under Development":
        return Release(version=collection.version, type="development", description=UPCOMING_DESCRIPTION)
    if collection.status in ("Active", "EOL"):
        date, date_eol = resolve_dates(
            collection.version,
            with_eol=collection.status == "EOL",
            url_template=config.schedule_url,
            tz=config.tz,
        )
        return Release(
            version=collection.version,
            type="stable",
            description=ANNOUNCEMENT_URL.format(version=collection.version),
            date=date,
            date_eol=date_eol,
        )
    raise UnknownStatusError(
        f"Unexpected status {collection.status!r} for {collection.name} {collection.version}"
    )


# === DOCUMENT ===
def build_component(releases: list[Release]) -> Component:
    return Component(releases=list(releases))


def _paragraph(parent: ET.Element, text: str) -> None:
    description = ET.SubElement(parent, "description")
    ET.SubElement(description, "p").text = text


def to_xml(component: Component) -> str:
    """Serialize the component as an indented metainfo document."""
    root = ET.Element("component", type=component.type)
    ET.SubElement(root, "id").text = component.id
    ET.SubElement(root, "name").text = component.name
    ET.SubElement(root, "summary").text = component.summary
    _paragraph(root, component.description)
    ET.SubElement(root, "url", type="homepage").text = component.homepage
    ET.SubElement(root, "metadata_license").text = component.metadata_license
    ET.SubElement(root, "developer_name").text = component.developer_name

    releases = ET.SubElement(root, "releases")
    for release in component.releases:
        attrib = {"version": release.version, "type": release.type}
        if release.date:
            attrib["date"] = release.date
        if release.date_eol:
            attrib["date_eol"] = release.date_eol
        _paragraph(ET.SubElement(releases, "release", attrib), release.description)

    ET.indent(root, space="  ", level=0)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


def parse_metainfo(text: str) -> list[Release]:
    """Read the releases back out of a metainfo document."""
    root = ET.fromstring(text.encode("utf-8"))
    return [
        Release(
            version=release.get("version", ""),
            type=release.get("type", ""),
            description=release.findtext("description/p", default=""),
            date=release.get("date", ""),
            date_eol=release.get("date_eol", ""),
        )
        for release in root.findall("releases/release")
    ]


def write_metainfo(component: Component, path: str = OUTPUT_FILE) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(to_xml(component))
    except OSError as e:
        raise OutputError(f"Error writing {path}: {e}") from e


# === PIPELINE ===
def generate(source: Optional[str] = None, config: Optional[Config] = None) -> Component:
    """Fetch, filter and map the collections into a metainfo component."""
    config = config or Config()
    collection_set = parse_collections(fetch(source, url=config.collections_url))
    logger.info("Found %d collections.", len(collection_set.collections))

    releases = [map_release(c, config) for c in filter_collections(collection_set.collections)]
    logger.info("Found %d releases.", len(releases))
    return build_component(releases)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate the Fedora Linux AppStream metainfo")
    parser.add_argument(
        "source", nargs="?", default=None,
        help="local collections JSON file (default: fetch from the package database)",
    )
    parser.add_argument("-o", "--output", default=OUTPUT_FILE, help=f"output file (default: {OUTPUT_FILE})")
    parser.add_argument("--utc", action="store_true", help="compute milestone dates in UTC instead of local time")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    config = Config(output=args.output, tz=datetime.timezone.utc if args.utc else None)
    try:
        component = generate(args.source, config)
        write_metainfo(component, config.output)
    except MetainfoError as e:
        logger.error("%s", e)
        return 1

    logger.info("Metainfo saved to '%s'", config.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
