class CaseDataError(RuntimeError):
    """Base class for pipeline failures that map to a stable error code."""

    code = "case_data_error"
    status_code = 500


class UpstreamFetchError(CaseDataError):
    """Raised when a remote dataset cannot be fetched."""

    code = "upstream_fetch_failed"
    status_code = 502


class DecodeError(CaseDataError):
    """Raised when an upstream CSV/JSON payload does not match its schema."""

    code = "upstream_decode_failed"
    status_code = 502


class GeometryError(CaseDataError):
    """Raised for a single malformed feature; callers skip the feature."""

    code = "geometry_invalid"


class LocalResourceError(CaseDataError):
    """Raised when a bundled reference file is missing or corrupt."""

    code = "local_resource_unavailable"
