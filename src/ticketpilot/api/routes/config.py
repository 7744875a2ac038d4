"""Configuration endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from ticketpilot.api.dependencies import ConfigDep, get_components, get_config_path
from ticketpilot.api.models import APIResponse, ConfigUpdate
from ticketpilot.config import save_config
from ticketpilot.service import Components

router = APIRouter(prefix="/config", tags=["config"])


@router.get("", response_model=APIResponse[dict[str, Any]])
def get_config(config: ConfigDep) -> APIResponse[dict[str, Any]]:
    """Get the current configuration."""
    return APIResponse(data=config.to_dict())


@router.post("", response_model=APIResponse[dict[str, Any]])
def set_config(
    body: ConfigUpdate, components: Components = Depends(get_components)
) -> APIResponse[dict[str, Any]]:
    """Set one configuration key, persist it and apply it to the running components."""
    components.config.set_value(body.key, body.value)
    save_config(components.config, get_config_path())
    components.apply_config()
    return APIResponse(data=components.config.to_dict())
