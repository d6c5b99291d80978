"""S3-style hierarchical listing over flat key enumeration.

Backends return a flat, prefix-filtered page of items. This module groups
them by path segment into common prefixes (pseudo-directories) and content
entries, and serializes the result as an S3 ``ListBucketResult`` document.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import UTC, datetime

from unistore.storage.metadata import is_dir
from unistore.storage.models import StorageItem

STORAGE_CLASS = "STANDARD"


@dataclass(frozen=True)
class ListEntry:
    """One ``Contents`` element."""

    key: str
    last_modified: datetime
    etag: str
    size: int
    storage_class: str = STORAGE_CLASS


@dataclass
class ListBucketResult:
    """In-memory form of the ``ListBucketResult`` document."""

    name: str
    prefix: str
    marker: str
    max_keys: int
    is_truncated: bool = False
    contents: list[ListEntry] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)

    def to_xml(self) -> bytes:
        root = ET.Element("ListBucketResult")
        ET.SubElement(root, "Name").text = self.name
        ET.SubElement(root, "Prefix").text = self.prefix
        ET.SubElement(root, "Marker").text = self.marker
        ET.SubElement(root, "MaxKeys").text = str(self.max_keys)
        ET.SubElement(root, "IsTruncated").text = "true" if self.is_truncated else "false"

        for entry in self.contents:
            contents = ET.SubElement(root, "Contents")
            ET.SubElement(contents, "Key").text = entry.key
            ET.SubElement(contents, "LastModified").text = format_timestamp(entry.last_modified)
            ET.SubElement(contents, "ETag").text = entry.etag
            ET.SubElement(contents, "Size").text = str(entry.size)
            ET.SubElement(contents, "StorageClass").text = entry.storage_class

        for prefix in self.common_prefixes:
            common = ET.SubElement(root, "CommonPrefixes")
            ET.SubElement(common, "Prefix").text = prefix

        return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def format_timestamp(value: datetime) -> str:
    """RFC 3339 timestamp in UTC, second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_listing(
    *,
    bucket: str,
    prefix: str,
    marker: str,
    max_keys: int,
    items: list[StorageItem],
) -> ListBucketResult:
    """Group a flat page of items into contents and common prefixes.

    Args:
        bucket: Bucket name reported as ``Name``.
        prefix: Effective (native) prefix the items were filtered by.
        marker: Continuation marker returned by the backend ("" when done).
        max_keys: Requested page size.
        items: Items in key order, all starting with ``prefix``.

    Returns:
        The listing. Prefix and keys are split on "/" as they are, so "a"
        counts one segment and "a/" two. A key with more segments than the
        prefix collapses into a common prefix of the prefix's segment count.
        Directories at the prefix depth become common prefixes; everything
        else is a content entry.
    """
    result = ListBucketResult(
        name=bucket,
        prefix=prefix,
        marker=marker,
        max_keys=max_keys,
        is_truncated=bool(marker),
    )
    depth = len(prefix.split("/"))
    seen: set[str] = set()

    for item in items:
        segments = item.id.split("/")
        is_marker = item.id.endswith("/")
        common_prefix = ""
        key = ""

        if len(segments) > depth:
            common_prefix = "/".join(segments[:depth])
        elif not is_marker and is_dir(item):
            common_prefix = item.id
        else:
            key = item.id

        if common_prefix:
            if common_prefix not in seen:
                seen.add(common_prefix)
                result.common_prefixes.append(f"{common_prefix}/")
            continue

        if not key:
            continue
        result.contents.append(
            ListEntry(
                key=key,
                last_modified=item.last_modified,
                etag=item.etag,
                size=0 if is_marker else item.size,
            )
        )

    return result
