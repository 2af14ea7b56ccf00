"""API views for the form configuration store."""
from __future__ import annotations

import logging
from typing import Dict

from django.db.models import Sum
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response

from onboarding_service.envelope import success

from .models import FormConfiguration, generate_config_id
from .serializers import (
    CloneRequestSerializer,
    FormConfigurationListSerializer,
    FormConfigurationSerializer,
)

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes"}


class FormConfigurationViewSet(viewsets.ModelViewSet):
    queryset = FormConfiguration.objects.all()
    serializer_class = FormConfigurationSerializer
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["name", "description", "form_type"]
    ordering_fields = ["name", "updated_at", "usage_count"]
    ordering = ["name"]

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        params = self.request.query_params
        form_type = params.get("formType")
        if form_type:
            queryset = queryset.filter(form_type=form_type)
        is_active = params.get("isActive")
        if is_active is not None and is_active != "":
            queryset = queryset.filter(is_active=is_active.lower() in _TRUTHY)
        created_by = params.get("createdById")
        if created_by:
            queryset = queryset.filter(created_by_id=created_by)
        return queryset

    def _list_response(self, queryset, message: str) -> Response:
        serializer = FormConfigurationListSerializer(queryset, many=True)
        return success(serializer.data, message)

    def list(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        queryset = self.filter_queryset(self.get_queryset())
        return self._list_response(queryset, "Form configurations retrieved")

    def retrieve(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        serializer = self.get_serializer(self.get_object())
        return success(serializer.data, "Form configuration retrieved")

    def create(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        configuration = serializer.save()
        logger.info("Created form configuration %s (%s)", configuration.config_id, configuration.pk)
        return success(
            self.get_serializer(configuration).data,
            "Form configuration created",
            status.HTTP_201_CREATED,
        )

    def update(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        partial = kwargs.pop("partial", False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        configuration = serializer.save()
        return success(self.get_serializer(configuration).data, "Form configuration updated")

    def destroy(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        """Unpublish rather than delete so existing submissions keep resolving."""

        configuration = self.get_object()
        configuration.is_active = False
        configuration.save(update_fields=["is_active", "updated_at"])
        return success(message="Form configuration deleted")

    @action(detail=False, methods=["get"], url_path=r"config/(?P<config_id>[^/]+)")
    def by_config_id(self, request: Request, config_id: str = "") -> Response:
        configuration = get_object_or_404(FormConfiguration, config_id=config_id)
        return success(self.get_serializer(configuration).data, "Form configuration retrieved")

    @action(detail=False, methods=["get"], url_path=r"user/(?P<user_id>[^/]+)")
    def by_user(self, request: Request, user_id: str = "") -> Response:
        queryset = FormConfiguration.objects.filter(created_by_id=user_id)
        return self._list_response(queryset, "Form configurations retrieved")

    @action(detail=False, methods=["get"], url_path=r"type/(?P<form_type>[^/]+)")
    def by_type(self, request: Request, form_type: str = "") -> Response:
        queryset = FormConfiguration.objects.filter(form_type=form_type)
        return self._list_response(queryset, "Form configurations retrieved")

    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request: Request) -> Response:
        queryset = FormConfiguration.objects.all()
        total = queryset.count()
        active = queryset.filter(is_active=True).count()
        total_usage = queryset.aggregate(total=Sum("usage_count"))["total"] or 0

        most_used = queryset.filter(usage_count__gt=0).order_by("-usage_count", "id").first()
        usage_by_type: Dict[str, int] = {}
        for entry in queryset.values("form_type").order_by().annotate(total=Sum("usage_count")):
            usage_by_type[entry["form_type"]] = int(entry["total"] or 0)

        recent = queryset.order_by("-created_at", "-id")[:5]
        return success(
            {
                "totalConfigurations": total,
                "activeConfigurations": active,
                "inactiveConfigurations": total - active,
                "totalUsage": total_usage,
                "mostUsedConfiguration": (
                    {
                        "id": most_used.pk,
                        "name": most_used.name,
                        "usageCount": most_used.usage_count,
                    }
                    if most_used is not None
                    else None
                ),
                "recentlyCreated": FormConfigurationListSerializer(recent, many=True).data,
                "usageByType": usage_by_type,
            },
            "Form configuration statistics retrieved",
        )

    @action(detail=True, methods=["post"], url_path="clone")
    def clone(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        """Duplicate a configuration under a new name and a fresh config_id."""

        source = self.get_object()
        payload = CloneRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        duplicate = FormConfiguration.objects.create(
            config_id=generate_config_id(),
            name=payload.validated_data["name"],
            form_type=source.form_type,
            version=source.version,
            description=source.description,
            applicantconfig=source.applicantconfig,
            sections=source.sections,
            consent_forms=source.consent_forms,
            documents=source.documents,
            is_active=False,
            created_by_id=source.created_by_id,
        )
        logger.info("Cloned form configuration %s into %s", source.config_id, duplicate.config_id)
        return success(
            self.get_serializer(duplicate).data,
            "Form configuration cloned",
            status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["patch"], url_path="status")
    def toggle_status(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        """Publish or unpublish a configuration."""

        configuration = self.get_object()
        configuration.is_active = not configuration.is_active
        configuration.save(update_fields=["is_active", "updated_at"])
        return success(self.get_serializer(configuration).data, "Form configuration status updated")

    @action(detail=True, methods=["get"], url_path="documents")
    def documents(self, request: Request, *args, **kwargs) -> Response:  # type: ignore[override]
        schema = self.get_object().to_schema()
        return success(
            [document.to_dict() for document in schema.documents],
            "Form documents retrieved",
        )
