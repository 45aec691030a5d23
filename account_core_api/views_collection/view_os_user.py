# account_core_api/views_collection/view_os_user.py
from __future__ import annotations

from typing import Dict

from drf_spectacular.utils import extend_schema, OpenApiParameter, inline_serializer
from rest_framework import serializers
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from accountlibs import (
    get_request_param,
    build_standard_error_response,
    StandardResponse,
    StandardErrorResponse,
    QuerySaveToDB,
)
from accountlibs.distro import find_commands_class
from accountlibs.mixins import OSUserValidationMixin
from account_core_api.services import get_identity, get_user_manager

# ========== OpenAPI Parameters ==========
ParamUsername = OpenApiParameter(name="username", type=str, required=True, location="path", description="Linux account name (e.g. alice)")
ParamIncludeSystem = OpenApiParameter(name="include_system", type=bool, required=False, default=False, description="Include system accounts (UID < 1000)")

# order in which a combined update is applied
UPDATE_FIELDS = ("shell", "password", "home", "groups", "comment")


class OSUserViewSet(viewsets.ViewSet, OSUserValidationMixin):
    """
    Operating system account management.
    """
    lookup_field = "username"
    lookup_value_regex = r"[a-z_][a-z0-9_-]*\$?"

    @extend_schema(parameters=[ParamIncludeSystem] + QuerySaveToDB, responses={200: inline_serializer("OSUserList", {"data": serializers.ListField(child=serializers.CharField())})})
    def list(self, request: Request) -> Response:
        """
        List account names.
        """
        include_system = get_request_param(request, "include_system", bool, False)
        save_to_db = get_request_param(request, "save_to_db", bool, False)
        request_data = dict(request.query_params)
        try:
            users = get_user_manager().list_users(include_system=include_system)
            return StandardResponse(
                data=users,
                message="User list retrieved.",
                details={"count": len(users), "include_system": include_system},
                request_data=request_data,
                save_to_db=save_to_db,
            )
        except Exception as e:
            return build_standard_error_response(e, "user_list_failed", "Failed to read the user list.", request_data, save_to_db)

    @extend_schema(parameters=[ParamUsername] + QuerySaveToDB, responses={200: inline_serializer("OSUserDetail", {"data": serializers.JSONField()})})
    def retrieve(self, request: Request, username: str) -> Response:
        """
        Passwd entry and supplementary groups of one account.
        """
        save_to_db = get_request_param(request, "save_to_db", bool, False)
        request_data = dict(request.query_params)
        try:
            manager = get_user_manager()
            if err := self._validate_user_exists(manager, username, save_to_db, request_data, True): return err
            return StandardResponse(
                data=manager.get_user(username),
                message=f"User '{username}' retrieved.",
                request_data=request_data,
                save_to_db=save_to_db,
            )
        except Exception as e:
            return build_standard_error_response(e, "user_detail_failed", "Failed to read the user.", request_data, save_to_db)

    @extend_schema(
        request=inline_serializer("OSUserCreate", {
            "username": serializers.CharField(),
            "home": serializers.CharField(required=False),
            "save_to_db": serializers.BooleanField(required=False, default=False),
        }),
        responses={201: StandardResponse},
    )
    def create(self, request: Request) -> Response:
        """
        Create an account and its home directory.
        """
        username = get_request_param(request, "username", str, None)
        home = get_request_param(request, "home", str, None)
        save_to_db = get_request_param(request, "save_to_db", bool, False)
        request_data = {"username": username, "home": home}
        if not username:
            return StandardErrorResponse(error_code="missing_username", error_message="Parameter 'username' is required.", status=400, request_data=request_data, save_to_db=save_to_db)
        try:
            manager = get_user_manager()
            if err := self._validate_user_exists(manager, username, save_to_db, request_data, False): return err
            output = manager.add_user(username, home)
            return StandardResponse(
                data=manager.get_user(username),
                message=f"User '{username}' created.",
                details={"output": output},
                status=201,
                request_data=request_data,
                save_to_db=save_to_db,
            )
        except Exception as e:
            return build_standard_error_response(e, "user_create_failed", "Failed to create the user.", request_data, save_to_db)

    @extend_schema(
        parameters=[ParamUsername],
        request=inline_serializer("OSUserUpdate", {
            "shell": serializers.CharField(required=False),
            "password": serializers.CharField(required=False, help_text="crypt(3) hash, stored as-is"),
            "home": serializers.CharField(required=False),
            "groups": serializers.ListField(child=serializers.CharField(), required=False),
            "comment": serializers.CharField(required=False),
            "save_to_db": serializers.BooleanField(required=False, default=False),
        }),
        responses={200: StandardResponse},
    )
    @action(detail=True, methods=["put"], url_path="update")
    def update_user(self, request: Request, username: str) -> Response:
        """
        Change shell, password, home, supplementary groups and/or comment of an account.
        """
        save_to_db = get_request_param(request, "save_to_db", bool, False)
        changes: Dict[str, object] = {}
        for field in UPDATE_FIELDS:
            if field == "groups":
                # [] or "" drops every supplementary group; null means no change
                if request.data.get("groups") is not None:
                    changes["groups"] = get_request_param(request, "groups", list, [])
            else:
                value = get_request_param(request, field, str, None)
                if value is not None:
                    changes[field] = value
        request_data = {k: ("***" if k == "password" else v) for k, v in changes.items()}
        if not changes:
            return StandardErrorResponse(error_code="nothing_to_update", error_message=f"At least one of {', '.join(UPDATE_FIELDS)} is required.", status=400, request_data=request_data, save_to_db=save_to_db)
        try:
            manager = get_user_manager()
            if err := self._validate_user_exists(manager, username, save_to_db, request_data, True): return err
            operations = {
                "shell": manager.change_shell,
                "password": manager.change_password,
                "home": manager.change_home_dir,
                "groups": manager.change_groups,
                "comment": manager.change_comment,
            }
            outputs = {field: operations[field](username, value) for field, value in changes.items()}
            return StandardResponse(
                data=manager.get_user(username),
                message=f"User '{username}' updated.",
                details={"updated": list(changes), "output": outputs},
                request_data=request_data,
                save_to_db=save_to_db,
            )
        except Exception as e:
            return build_standard_error_response(e, "user_update_failed", "Failed to update the user.", request_data, save_to_db)

    @extend_schema(parameters=[ParamUsername] + QuerySaveToDB)
    def destroy(self, request: Request, username: str) -> Response:
        """
        Kill every process of the account, then remove it together with its home directory.
        """
        save_to_db = get_request_param(request, "save_to_db", bool, False)
        request_data = dict(request.query_params)
        try:
            manager = get_user_manager()
            if err := self._validate_user_exists(manager, username, save_to_db, request_data, True): return err
            output = manager.delete_user(username)
            return StandardResponse(message=f"User '{username}' deleted.", details={"output": output}, request_data=request_data, save_to_db=save_to_db)
        except Exception as e:
            return build_standard_error_response(e, "user_delete_failed", "Failed to delete the user.", request_data, save_to_db)


class OSIdentityView(APIView):
    @extend_schema(responses={200: inline_serializer("OSIdentity", {"data": serializers.JSONField()})})
    def get(self, request: Request) -> Response:
        """
        Detected operating system identity and the command family used for it.
        """
        request_data = dict(request.query_params)
        try:
            identity = get_identity()
            commands_class = find_commands_class(identity)
            return StandardResponse(
                data={
                    "identity": identity,
                    "supported": commands_class is not None,
                    "family": commands_class.family if commands_class else None,
                },
                message="Operating system identity retrieved.",
                request_data=request_data,
            )
        except Exception as e:
            return build_standard_error_response(e, "os_identity_failed", "Failed to read the operating system identity.", request_data)
