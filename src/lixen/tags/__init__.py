"""Tag addresses, the annotation grammar and its canonical serializer."""

from lixen.tags.grammar import parse_tags, serialize_tags
from lixen.tags.models import DIRECT, TagRef, TagSet

__all__ = ["DIRECT", "TagRef", "TagSet", "parse_tags", "serialize_tags"]
