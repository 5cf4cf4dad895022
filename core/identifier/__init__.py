from .extractor import (
    IdentifierExtractor,
    normalize_branch,
    sanitize_token,
    extract_from_branch_name,
)

__all__ = ["IdentifierExtractor", "normalize_branch", "sanitize_token", "extract_from_branch_name"]
