"""Read access to survey data for analytics.

SurveyDataSource is the only way the analytics core touches storage. All
reads are async; bounded pages are requested with (limit, offset) and
walked by iter_pages. The member to department join is resolved here
into a typed DepartmentDirectory so the aggregator never sees raw
membership rows.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from sollar.shared.database import (
    BaseRepository,
    ConnectionManager,
    DEFAULT_PAGE_SIZE,
    iter_pages,
)
from sollar.shared.models import (
    Assessment,
    Department,
    DepartmentMembership,
    Question,
    Response,
)
from sollar.shared.utils import safe_identifier

logger = logging.getLogger(__name__)


class SurveyDataSource(ABC):
    """Async read interface over questions, responses and departments."""

    @abstractmethod
    async def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        """Assessment with its questionnaire questions, None if unknown."""

    @abstractmethod
    async def get_question(self, question_id: str) -> Optional[Question]:
        """Single question, None if unknown."""

    @abstractmethod
    async def fetch_responses(
        self,
        assessment_id: str,
        limit: int,
        offset: int,
        question_id: Optional[str] = None,
    ) -> List[Response]:
        """One page of responses in a stable order."""

    @abstractmethod
    async def count_participants(self, assessment_id: str) -> int:
        """Distinct anonymous participants in the assessment."""

    @abstractmethod
    async def fetch_departments(self, organization_id: str) -> List[Department]:
        """Every department of the organization with its headcount."""

    @abstractmethod
    async def fetch_memberships(
        self,
        organization_id: str,
        limit: int,
        offset: int,
    ) -> List[DepartmentMembership]:
        """One page of member to department relations."""


class DepartmentDirectory:
    """Typed member to department relation for one organization.

    A member listed in several departments resolves to the first one read.
    """

    def __init__(self, memberships: Iterable[DepartmentMembership] = ()):
        self._by_member: Dict[str, str] = {}
        for membership in memberships:
            self.add(membership)

    def add(self, membership: DepartmentMembership) -> None:
        if membership.member_id in self._by_member:
            logger.debug(
                "DUPLICATE_DEPARTMENT_MEMBERSHIP",
                extra={"member": safe_identifier(membership.member_id)}
            )
            return
        self._by_member[membership.member_id] = membership.department_id

    def department_of(self, member_id: Optional[str]) -> Optional[str]:
        if member_id is None:
            return None
        return self._by_member.get(member_id)

    def __len__(self) -> int:
        return len(self._by_member)

    @classmethod
    async def load(
        cls,
        source: SurveyDataSource,
        organization_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "DepartmentDirectory":
        """Read every membership page of an organization."""
        directory = cls()

        async def fetch(limit: int, offset: int) -> List[DepartmentMembership]:
            return await source.fetch_memberships(organization_id, limit, offset)

        async for page in iter_pages(fetch, page_size, context=f"memberships:{organization_id}"):
            for membership in page:
                directory.add(membership)

        logger.info(
            "DEPARTMENT_DIRECTORY_LOADED",
            extra={"organization_id": organization_id, "members": len(directory)}
        )
        return directory


class QuestionRepository(BaseRepository[Question]):
    """Questions of a questionnaire."""

    columns = ("id", "category", "type", "risk_inverted", "text")

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "questions")

    def _row_to_entity(self, row: tuple) -> Question:
        return Question(
            id=row[0],
            category=row[1] or "",
            type=row[2] or "text",
            risk_inverted=True if row[3] is None else bool(row[3]),
            text=row[4] or "",
        )

    def find_by_questionnaire(self, questionnaire_id: str) -> List[Question]:
        return self.find_where("questionnaire_id = %s", (questionnaire_id,), order_by="order_index, id")


class ResponseRepository(BaseRepository[Response]):
    """Submitted answers. Bulk-inserted at submission, never updated."""

    columns = (
        "id", "assessment_id", "question_id", "anonymous_id",
        "response_text", "created_at", "user_id",
    )

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "responses")

    def _row_to_entity(self, row: tuple) -> Response:
        return Response(
            id=row[0],
            assessment_id=row[1],
            question_id=row[2],
            anonymous_id=row[3] or "",
            raw_value=row[4],
            created_at=row[5],
            member_id=row[6],
        )

    def find_page_for_assessment(
        self,
        assessment_id: str,
        limit: int,
        offset: int,
        question_id: Optional[str] = None,
    ) -> List[Response]:
        if question_id is None:
            return self.find_page(
                "assessment_id = %s", (assessment_id,), limit, offset,
                order_by="created_at, id",
            )
        return self.find_page(
            "assessment_id = %s AND question_id = %s", (assessment_id, question_id),
            limit, offset, order_by="created_at, id",
        )

    def count_participants(self, assessment_id: str) -> int:
        row = self._fetch(
            f"SELECT COUNT(DISTINCT anonymous_id) FROM {self.table_name} WHERE assessment_id = %s",
            (assessment_id,),
            one=True,
        )
        return row[0] if row else 0


class DepartmentRepository(BaseRepository[Department]):
    """Departments with member headcount."""

    columns = ("id", "name")

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "departments")

    def _row_to_entity(self, row: tuple) -> Department:
        employee_count = row[2] if len(row) > 2 else 0
        return Department(id=row[0], name=row[1] or "", employee_count=employee_count or 0)

    def find_with_headcount(self, organization_id: str) -> List[Department]:
        rows = self._fetch(
            """
            SELECT d.id, d.name, COUNT(m.user_id)
            FROM departments d
            LEFT JOIN department_members m ON m.department_id = d.id
            WHERE d.organization_id = %s
            GROUP BY d.id, d.name
            ORDER BY d.name, d.id
            """,
            (organization_id,),
        )
        return [self._row_to_entity(row) for row in rows]


class MembershipRepository(BaseRepository[DepartmentMembership]):
    """Member to department relations, scoped to one organization."""

    columns = ("m.user_id", "m.department_id")

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(
            connection_manager,
            "department_members m JOIN departments d ON d.id = m.department_id",
        )

    def _row_to_entity(self, row: tuple) -> DepartmentMembership:
        return DepartmentMembership(member_id=row[0], department_id=row[1])

    def find_page_for_organization(
        self,
        organization_id: str,
        limit: int,
        offset: int,
    ) -> List[DepartmentMembership]:
        return self.find_page(
            "d.organization_id = %s", (organization_id,), limit, offset,
            order_by="m.user_id, m.department_id",
        )


class AssessmentRepository(BaseRepository[Assessment]):
    """Assessments joined with their questionnaire's questions."""

    columns = ("id", "organization_id", "title", "questionnaire_id")

    def __init__(
        self,
        connection_manager: ConnectionManager,
        questions: QuestionRepository,
    ):
        super().__init__(connection_manager, "assessments")
        self.questions = questions

    def _row_to_entity(self, row: tuple) -> Assessment:
        questionnaire_id = row[3]
        questions = (
            tuple(self.questions.find_by_questionnaire(questionnaire_id))
            if questionnaire_id else ()
        )
        return Assessment(
            id=row[0],
            organization_id=row[1],
            title=row[2] or "",
            questions=questions,
        )


class PostgresSurveyDataSource(SurveyDataSource):
    """SurveyDataSource over the PostgreSQL survey store.

    psycopg2 is blocking, so each read runs in a worker thread.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager
        self.questions = QuestionRepository(connection_manager)
        self.responses = ResponseRepository(connection_manager)
        self.departments = DepartmentRepository(connection_manager)
        self.memberships = MembershipRepository(connection_manager)
        self.assessments = AssessmentRepository(connection_manager, self.questions)

    async def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        return await asyncio.to_thread(self.assessments.find_by_id, assessment_id)

    async def get_question(self, question_id: str) -> Optional[Question]:
        return await asyncio.to_thread(self.questions.find_by_id, question_id)

    async def fetch_responses(
        self,
        assessment_id: str,
        limit: int,
        offset: int,
        question_id: Optional[str] = None,
    ) -> List[Response]:
        return await asyncio.to_thread(
            self.responses.find_page_for_assessment,
            assessment_id, limit, offset, question_id,
        )

    async def count_participants(self, assessment_id: str) -> int:
        return await asyncio.to_thread(self.responses.count_participants, assessment_id)

    async def fetch_departments(self, organization_id: str) -> List[Department]:
        return await asyncio.to_thread(self.departments.find_with_headcount, organization_id)

    async def fetch_memberships(
        self,
        organization_id: str,
        limit: int,
        offset: int,
    ) -> List[DepartmentMembership]:
        return await asyncio.to_thread(
            self.memberships.find_page_for_organization,
            organization_id, limit, offset,
        )


class InMemorySurveyDataSource(SurveyDataSource):
    """SurveyDataSource over plain Python collections.

    Used for local runs and tests. Pages are served in insertion order.
    """

    def __init__(
        self,
        assessments: Iterable[Assessment] = (),
        responses: Iterable[Response] = (),
        departments: Optional[Dict[str, List[Department]]] = None,
        memberships: Optional[Dict[str, List[DepartmentMembership]]] = None,
    ):
        self.assessments = {a.id: a for a in assessments}
        self.responses: List[Response] = list(responses)
        self.departments = departments or {}
        self.memberships = memberships or {}
        self.page_requests = 0

    def add_response(self, response: Response) -> None:
        self.responses.append(response)

    async def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        return self.assessments.get(assessment_id)

    async def get_question(self, question_id: str) -> Optional[Question]:
        for assessment in self.assessments.values():
            question = assessment.question_by_id(question_id)
            if question is not None:
                return question
        return None

    async def fetch_responses(
        self,
        assessment_id: str,
        limit: int,
        offset: int,
        question_id: Optional[str] = None,
    ) -> List[Response]:
        self.page_requests += 1
        matching = [
            r for r in self.responses
            if r.assessment_id == assessment_id
            and (question_id is None or r.question_id == question_id)
        ]
        return matching[offset:offset + limit]

    async def count_participants(self, assessment_id: str) -> int:
        return len({r.anonymous_id for r in self.responses if r.assessment_id == assessment_id})

    async def fetch_departments(self, organization_id: str) -> List[Department]:
        return list(self.departments.get(organization_id, []))

    async def fetch_memberships(
        self,
        organization_id: str,
        limit: int,
        offset: int,
    ) -> List[DepartmentMembership]:
        return self.memberships.get(organization_id, [])[offset:offset + limit]
