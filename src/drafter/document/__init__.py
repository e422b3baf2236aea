"""Announcement document parsing."""

from drafter.document.models import AnnouncementDocument, TargetRef
from drafter.document.parser import parse

__all__ = ["AnnouncementDocument", "TargetRef", "parse"]
