"""OS image catalog lookup: pick the newest image for a label and location.

This is a standalone utility for callers that hold an ``<Images>`` catalog
document. The build itself names its image through the ``image_publisher``,
``image_offer``, ``image_sku`` and ``image_version`` settings and does not
consult the catalog.
"""

import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from .exceptions import ImageNotFoundError


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


@dataclass
class OsImage:
    name: str
    label: str
    image_family: str = ""
    location: str = ""
    published_date: Optional[datetime] = None

    @property
    def locations(self) -> list[str]:
        return [loc.strip() for loc in self.location.split(";") if loc.strip()]


@dataclass
class OsImageList:
    images: list[OsImage] = field(default_factory=list)

    @classmethod
    def parse(cls, body: Union[str, bytes]) -> "OsImageList":
        """Parse an ``<Images>`` document from the image catalog."""
        root = ElementTree.fromstring(body)
        images = []
        for element in root.iter():
            if _local_name(element.tag) != "OSImage":
                continue
            fields = {_local_name(child.tag): (child.text or "") for child in element}
            images.append(
                OsImage(
                    name=fields.get("Name", ""),
                    label=fields.get("Label", ""),
                    image_family=fields.get("ImageFamily", ""),
                    location=fields.get("Location", ""),
                    published_date=_parse_date(fields.get("PublishedDate")),
                )
            )
        return cls(images)

    def filter(self, label: str, location: str) -> list[OsImage]:
        return [image for image in self.images if image.label == label and location in image.locations]

    @staticmethod
    def sort_by_date_desc(images: list[OsImage]) -> None:
        """Sort in place, newest first; undated images go last."""
        images.sort(key=lambda image: image.published_date.timestamp() if image.published_date else float("-inf"), reverse=True)

    def select_latest(self, label: str, location: str) -> OsImage:
        matches = self.filter(label, location)
        if not matches:
            raise ImageNotFoundError(label, location)
        self.sort_by_date_desc(matches)
        return matches[0]
