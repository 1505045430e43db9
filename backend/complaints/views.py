"""
Complaints app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

Domain exceptions raised by services are translated to HTTP responses by
``core.domain.exception_handler``; views never catch them.

ViewSets
--------
- ``ComplaintViewSet``  — Complaint intake, search, workflow, assignment,
  comments, history and SLA lists.
- ``EscalationViewSet`` — Acknowledge / resolve escalations.
- ``JurisdictionView``  — The caller's resolved jurisdiction.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    AcceptSerializer,
    AssignmentHistorySerializer,
    AssignSerializer,
    BulkAssignSerializer,
    BulkTransitionSerializer,
    CloseSerializer,
    CommentCreateSerializer,
    CommentSerializer,
    ComplaintCreateSerializer,
    ComplaintDetailSerializer,
    ComplaintFilterSerializer,
    ComplaintListSerializer,
    ComplaintPageSerializer,
    DeclineSerializer,
    EscalationCreateSerializer,
    EscalationResolveSerializer,
    EscalationSerializer,
    JurisdictionSerializer,
    PerItemResultSerializer,
    PrioritySerializer,
    ReassignSerializer,
    SLAQuerySerializer,
    StaffWorkloadSerializer,
    StatusHistorySerializer,
    TransitionSerializer,
    WorkloadQuerySerializer,
)
from .services import (
    ComplaintAssignmentService,
    ComplaintCommentService,
    ComplaintQueryService,
    ComplaintSubmissionService,
    ComplaintWorkflowService,
    EscalationService,
    SLAService,
    StaffWorkloadService,
)

logger = logging.getLogger(__name__)

_ERRORS = {
    400: OpenApiResponse(description="Validation error."),
    403: OpenApiResponse(description="Missing capability or outside jurisdiction."),
    404: OpenApiResponse(description="Not found."),
    409: OpenApiResponse(description="Illegal transition or state conflict."),
}


def _page(items, total: int) -> dict:
    return {"count": total, "results": ComplaintListSerializer(items, many=True).data}


class ComplaintViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the complaints app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.  Permission checks (capability and jurisdiction)
    are enforced exclusively inside the service layer.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="Search complaints",
        description=(
            "Jurisdiction-scoped complaint search.  Filters narrow the caller's "
            "scope and never widen it.  ``count`` is the total before pagination."
        ),
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Status, repeatable or comma-separated."),
            OpenApiParameter(name="priority", type=str, location=OpenApiParameter.QUERY, description="Priority, repeatable or comma-separated."),
            OpenApiParameter(name="category", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="subcategory", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="ward", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="department", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="assigned_staff", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="unassigned", type=bool, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="is_escalated", type=bool, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="overdue", type=bool, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="q", type=str, location=OpenApiParameter.QUERY, description="Title or tracking code."),
            OpenApiParameter(name="submitted_from", type=str, location=OpenApiParameter.QUERY, description="ISO 8601 date, inclusive."),
            OpenApiParameter(name="submitted_to", type=str, location=OpenApiParameter.QUERY, description="ISO 8601 date, inclusive."),
            OpenApiParameter(name="sort", type=str, location=OpenApiParameter.QUERY, description="Sort key, prefix '-' for descending."),
            OpenApiParameter(name="offset", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="limit", type=int, location=OpenApiParameter.QUERY),
        ],
        responses={200: OpenApiResponse(response=ComplaintPageSerializer, description="One page of complaints.")},
        tags=["Complaints"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ComplaintFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        filters = dict(filter_serializer.validated_data)
        offset = filters.pop("offset")
        limit = filters.pop("limit", None)
        sort = filters.pop("sort")

        items, total = ComplaintQueryService.search(
            request.user, filters, offset=offset, limit=limit, sort=sort,
        )
        return Response(_page(items, total), status=status.HTTP_200_OK)

    @extend_schema(
        summary="Submit a complaint",
        request=ComplaintCreateSerializer,
        responses={
            201: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint registered."),
            400: _ERRORS[400],
        },
        tags=["Complaints"],
    )
    def create(self, request: Request) -> Response:
        serializer = ComplaintCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintSubmissionService.submit_complaint(
            serializer.validated_data, request.user,
        )
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve complaint detail",
        responses={
            200: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint detail."),
            403: _ERRORS[403],
            404: _ERRORS[404],
        },
        tags=["Complaints"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        complaint = ComplaintQueryService.get_detail(request.user, int(pk))
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    # ── Workflow @actions ─────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="transition")
    @extend_schema(
        summary="Transition complaint status",
        description="Move a complaint along a permitted lifecycle edge.",
        request=TransitionSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Transition applied."), **_ERRORS},
        tags=["Complaints – Workflow"],
    )
    def transition(self, request: Request, pk: int = None) -> Response:
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintWorkflowService.transition(
            int(pk),
            serializer.validated_data["status"],
            request.user,
            serializer.validated_data["note"],
        )
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="bulk-transition")
    @extend_schema(
        summary="Bulk transition",
        description="Apply one transition to many complaints; each item succeeds or fails on its own.",
        request=BulkTransitionSerializer,
        responses={200: OpenApiResponse(response=PerItemResultSerializer(many=True), description="Per-item results.")},
        tags=["Complaints – Workflow"],
    )
    def bulk_transition(self, request: Request) -> Response:
        serializer = BulkTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        results = ComplaintWorkflowService.bulk_transition(
            data["complaint_ids"], data["status"], request.user, data["note"],
        )
        return Response(PerItemResultSerializer(results, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="close")
    @extend_schema(
        summary="Close a resolved complaint",
        request=CloseSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint closed."), **_ERRORS},
        tags=["Complaints – Workflow"],
    )
    def close(self, request: Request, pk: int = None) -> Response:
        serializer = CloseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintAssignmentService.close(int(pk), serializer.validated_data["notes"], request.user)
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="priority")
    @extend_schema(
        summary="Change complaint priority",
        request=PrioritySerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Priority updated."), **_ERRORS},
        tags=["Complaints – Workflow"],
    )
    def priority(self, request: Request, pk: int = None) -> Response:
        serializer = PrioritySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintCommentService.update_priority(
            int(pk),
            serializer.validated_data["priority"],
            serializer.validated_data["reason"],
            request.user,
        )
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    # ── Assignment @actions ───────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="assign")
    @extend_schema(
        summary="Assign to staff",
        request=AssignSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint assigned."), **_ERRORS},
        tags=["Complaints – Assignment"],
    )
    def assign(self, request: Request, pk: int = None) -> Response:
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintAssignmentService.assign(
            int(pk),
            serializer.validated_data["staff_id"],
            request.user,
            serializer.validated_data["note"],
        )
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="reassign")
    @extend_schema(
        summary="Reassign to different staff",
        description=(
            "Move a complaint to another staff member.  The new holder is "
            "messaged, the previous holder is told to stop, and a system "
            "comment is posted; delivery failures never fail the request."
        ),
        request=ReassignSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint reassigned."), **_ERRORS},
        tags=["Complaints – Assignment"],
    )
    def reassign(self, request: Request, pk: int = None) -> Response:
        serializer = ReassignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        complaint = ComplaintAssignmentService.reassign(
            int(pk),
            data["staff_id"],
            data["reason"],
            request.user,
            note=data["note"],
            old_staff_user_id=data["old_staff_id"],
        )
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="bulk-assign")
    @extend_schema(
        summary="Bulk assign",
        request=BulkAssignSerializer,
        responses={
            200: OpenApiResponse(response=PerItemResultSerializer(many=True), description="Per-item results."),
            400: _ERRORS[400],
            403: _ERRORS[403],
            404: OpenApiResponse(description="Staff member not found."),
        },
        tags=["Complaints – Assignment"],
    )
    def bulk_assign(self, request: Request) -> Response:
        serializer = BulkAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        results = ComplaintAssignmentService.bulk_assign(
            data["complaint_ids"], data["staff_id"], request.user, data["note"],
        )
        return Response(PerItemResultSerializer(results, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="accept")
    @extend_schema(
        summary="Accept an assignment",
        description="The assigned staff member takes up the work; the complaint moves to ``in_progress``.",
        request=AcceptSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Work started."), **_ERRORS},
        tags=["Complaints – Assignment"],
    )
    def accept(self, request: Request, pk: int = None) -> Response:
        serializer = AcceptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintWorkflowService.accept(int(pk), request.user, serializer.validated_data["note"])
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="decline")
    @extend_schema(
        summary="Decline an assignment",
        description=(
            "The assigned staff member hands the work back.  The complaint "
            "returns to the unassigned queue and the assigning supervisor is notified."
        ),
        request=DeclineSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Assignment declined."), **_ERRORS},
        tags=["Complaints – Assignment"],
    )
    def decline(self, request: Request, pk: int = None) -> Response:
        serializer = DeclineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintWorkflowService.decline(int(pk), request.user, serializer.validated_data["reason"])
        return Response(ComplaintDetailSerializer(complaint).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="workload")
    @extend_schema(
        summary="Staff workload",
        description="Open, in-progress and overdue counts for each staff member the caller may assign into.",
        parameters=[
            OpenApiParameter(name="staff_id", type=int, location=OpenApiParameter.QUERY, description="Limit to one staff member."),
        ],
        responses={200: OpenApiResponse(response=StaffWorkloadSerializer(many=True), description="Per-staff workload."), 403: _ERRORS[403]},
        tags=["Complaints – Assignment"],
    )
    def workload(self, request: Request) -> Response:
        serializer = WorkloadQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        workloads = StaffWorkloadService.get_workload(request.user, serializer.validated_data["staff_id"])
        return Response(StaffWorkloadSerializer(workloads, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="unassigned")
    @extend_schema(
        summary="Unassigned intake queue",
        responses={200: OpenApiResponse(response=ComplaintListSerializer(many=True), description="Unassigned complaints in scope.")},
        tags=["Complaints – Assignment"],
    )
    def unassigned(self, request: Request) -> Response:
        items = ComplaintQueryService.get_unassigned(request.user)
        return Response(ComplaintListSerializer(items, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="sla")
    @extend_schema(
        summary="Overdue or at-risk complaints",
        parameters=[
            OpenApiParameter(name="mode", type=str, location=OpenApiParameter.QUERY, required=True, enum=[*SLAService.MODES]),
            OpenApiParameter(name="offset", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="limit", type=int, location=OpenApiParameter.QUERY),
        ],
        responses={200: OpenApiResponse(response=ComplaintPageSerializer, description="Earliest deadline first."), 400: _ERRORS[400]},
        tags=["Complaints – SLA"],
    )
    def sla(self, request: Request) -> Response:
        serializer = SLAQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        items, total = SLAService.get_sla_complaints(
            request.user, data["mode"], offset=data["offset"], limit=data.get("limit"),
        )
        return Response(_page(items, total), status=status.HTTP_200_OK)

    # ── Sub-resource @actions ─────────────────────────────────────────

    @action(detail=True, methods=["get", "post"], url_path="comments")
    @extend_schema(
        summary="List or add comments",
        description="GET: comments the caller may see.  POST: add a comment.",
        request=CommentCreateSerializer,
        responses={
            200: OpenApiResponse(response=CommentSerializer(many=True), description="Comment thread."),
            201: OpenApiResponse(response=CommentSerializer, description="Comment added."),
            **_ERRORS,
        },
        tags=["Complaints – Comments"],
    )
    def comments(self, request: Request, pk: int = None) -> Response:
        if request.method == "GET":
            qs = ComplaintCommentService.list_comments(request.user, int(pk))
            return Response(CommentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

        # POST
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = ComplaintCommentService.add_comment(
            int(pk),
            serializer.validated_data["content"],
            request.user,
            is_internal=serializer.validated_data["is_internal"],
        )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="status-history")
    @extend_schema(
        summary="Status history",
        responses={200: OpenApiResponse(response=StatusHistorySerializer(many=True), description="Oldest first.")},
        tags=["Complaints – History"],
    )
    def status_history(self, request: Request, pk: int = None) -> Response:
        qs = ComplaintQueryService.get_status_history(request.user, int(pk))
        return Response(StatusHistorySerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="assignment-history")
    @extend_schema(
        summary="Assignment history",
        responses={200: OpenApiResponse(response=AssignmentHistorySerializer(many=True), description="Oldest first.")},
        tags=["Complaints – History"],
    )
    def assignment_history(self, request: Request, pk: int = None) -> Response:
        qs = ComplaintQueryService.get_assignment_history(request.user, int(pk))
        return Response(AssignmentHistorySerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get", "post"], url_path="escalations")
    @extend_schema(
        summary="List or raise escalations",
        request=EscalationCreateSerializer,
        responses={
            200: OpenApiResponse(response=EscalationSerializer(many=True), description="Escalations for this complaint."),
            201: OpenApiResponse(response=EscalationSerializer, description="Escalation raised."),
            **_ERRORS,
        },
        tags=["Complaints – Escalations"],
    )
    def escalations(self, request: Request, pk: int = None) -> Response:
        if request.method == "GET":
            qs = EscalationService.list_for_complaint(request.user, int(pk))
            return Response(EscalationSerializer(qs, many=True).data, status=status.HTTP_200_OK)

        # POST
        serializer = EscalationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        escalation = EscalationService.escalate(int(pk), request.user, **serializer.validated_data)
        return Response(EscalationSerializer(escalation).data, status=status.HTTP_201_CREATED)


class EscalationViewSet(viewsets.ViewSet):
    """
    Endpoints
    ---------
    POST /api/escalations/{id}/acknowledge/
    POST /api/escalations/{id}/resolve/
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @action(detail=True, methods=["post"], url_path="acknowledge")
    @extend_schema(
        summary="Acknowledge escalation",
        request=None,
        responses={200: OpenApiResponse(response=EscalationSerializer, description="Acknowledged."), **_ERRORS},
        tags=["Complaints – Escalations"],
    )
    def acknowledge(self, request: Request, pk: int = None) -> Response:
        escalation = EscalationService.acknowledge(int(pk), request.user)
        return Response(EscalationSerializer(escalation).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="resolve")
    @extend_schema(
        summary="Resolve escalation",
        request=EscalationResolveSerializer,
        responses={200: OpenApiResponse(response=EscalationSerializer, description="Resolved."), **_ERRORS},
        tags=["Complaints – Escalations"],
    )
    def resolve(self, request: Request, pk: int = None) -> Response:
        serializer = EscalationResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        escalation = EscalationService.resolve(int(pk), request.user, serializer.validated_data["notes"])
        return Response(EscalationSerializer(escalation).data, status=status.HTTP_200_OK)


class JurisdictionView(APIView):
    """**GET /api/jurisdiction/** — the caller's resolved jurisdiction."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="My jurisdiction",
        responses={200: OpenApiResponse(response=JurisdictionSerializer, description="Resolved jurisdiction.")},
        tags=["Complaints – Assignment"],
    )
    def get(self, request: Request) -> Response:
        jurisdiction = ComplaintQueryService.get_jurisdiction(request.user)
        return Response(JurisdictionSerializer(jurisdiction.as_dict()).data, status=status.HTTP_200_OK)
