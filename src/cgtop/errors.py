"""Error types raised by the cgroup discovery pipeline."""


class CgroupError(Exception):
    """Base class for cgtop errors."""


class NotFoundError(CgroupError, LookupError):
    """A required key, hierarchy record, or mount entry is absent."""


class ParseError(CgroupError, ValueError):
    """Input could not be interpreted as the expected structured format."""
