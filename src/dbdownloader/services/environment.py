"""Environment guard for dbdownloader."""

from typing import Optional

from dbdownloader.constants import PRODUCTION_ENVIRONMENT


def can_run(environment_name: Optional[str]) -> bool:
    return environment_name != PRODUCTION_ENVIRONMENT
