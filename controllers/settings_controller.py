"""Settings read/update helpers for the admin API."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fastapi import Request

from controllers.image_controller import get_db_initializer
from dal.settings_dal import SettingsDAL


async def get_settings(request: Request) -> Dict[str, Optional[str]]:
	"""Return the current settings map."""
	return await SettingsDAL(get_db_initializer(request)).get_settings()


async def update_settings(request: Request, updates: Mapping[str, Any]) -> Dict[str, Any]:
	"""Update known settings keys; unknown keys are ignored."""
	changed = await SettingsDAL(get_db_initializer(request)).set_settings(dict(updates))
	return {"success": True, "updated": changed}
