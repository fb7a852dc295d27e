"""Destination name normalization."""

from loguru import logger

# The longest match wins when several suffixes apply.
ENVIRONMENT_SUFFIXES = (
    '-stg',
    '-prd',
    '-dev',
    '-prod',
    '-staging',
    '-production',
    '-test',
    '-qa',
    '-uat',
)


def normalize_name(workspace_name: str) -> str:
    """Strip a known environment suffix from a workspace name.

    Matching is case-insensitive, so ``app-STAGING`` becomes ``app``. Names
    without a known suffix are returned unchanged.

    Args:
        workspace_name: Workspace name as reported by Terraform Cloud

    Returns:
        Name used for the destination keys
    """
    lowered = workspace_name.lower()
    matched = ''

    for suffix in ENVIRONMENT_SUFFIXES:
        if lowered.endswith(suffix) and len(suffix) > len(matched):
            matched = suffix

    if not matched:
        return workspace_name

    clean_name = workspace_name[: -len(matched)]
    logger.debug(
        f'Normalized workspace name {workspace_name} -> {clean_name} '
        f'(removed suffix {matched})'
    )
    return clean_name
