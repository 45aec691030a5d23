# account_core_api/accountlibs/mixins.py
from __future__ import annotations

from typing import Any, Dict, Optional

from accountlibs import StandardErrorResponse
from accountlibs.user import UserManager, validate_username


class OSUserValidationMixin:
    def _validate_username_format(self, username: str, save_to_db: bool, request_data: Dict[str, Any]) -> Optional[StandardErrorResponse]:
        try:
            validate_username(username)
        except ValueError as e:
            return StandardErrorResponse(
                error_code="invalid_username",
                error_message=str(e),
                status=400,
                request_data=request_data,
                save_to_db=save_to_db,
            )
        return None

    def _validate_user_exists(self, manager: UserManager, username: str, save_to_db: bool, request_data: Dict[str, Any], must_exist: bool = True) -> Optional[StandardErrorResponse]:
        if err := self._validate_username_format(username, save_to_db, request_data):
            return err
        user = manager.get_user(username)
        if must_exist and user is None:
            return StandardErrorResponse(
                error_code="user_not_found",
                error_message=f"User '{username}' not found.",
                status=404,
                request_data=request_data,
                save_to_db=save_to_db,
            )
        if not must_exist and user is not None:
            return StandardErrorResponse(
                error_code="user_exists",
                error_message=f"User '{username}' already exists.",
                status=400,
                request_data=request_data,
                save_to_db=save_to_db,
            )
        return None
