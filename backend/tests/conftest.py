"""
SchoolQuiz - Test Configuration and Fixtures
"""
import os
from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Dict, Any, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_LEVEL'] = 'WARNING'

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.user import User, UserRole, UserTier, UserSubscriptionStatus
from app.models.quiz import Quiz, QuizRound, Question, QuizStatus
from app.schemas.organisation import OrganisationCreate
from app.services.organisation_service import organisation_service

fake = Faker()

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== USERS ====================

def headers_for(user: User) -> Dict[str, str]:
    token = create_access_token({
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value
    })
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def user_factory(db_session: AsyncSession) -> Callable:
    """Create users: ``await user_factory(tier=UserTier.PREMIUM)``"""
    async def create(**overrides) -> User:
        values = {
            'email': fake.unique.email().lower(),
            'name': fake.name(),
            'hashed_password': get_password_hash('testpassword123'),
            'role': UserRole.STUDENT,
            'tier': UserTier.FREE,
            'subscription_status': UserSubscriptionStatus.FREE_TRIAL,
            'is_active': True,
        }
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return create


@pytest.fixture
async def test_user(user_factory) -> User:
    """A free user"""
    return await user_factory()


@pytest.fixture
async def premium_user(user_factory) -> User:
    return await user_factory(tier=UserTier.PREMIUM, subscription_status=UserSubscriptionStatus.ACTIVE)


@pytest.fixture
async def admin_user(user_factory) -> User:
    """A platform admin"""
    return await user_factory(role=UserRole.PLATFORM_ADMIN)


@pytest.fixture
def make_headers() -> Callable[[User], Dict[str, str]]:
    return headers_for


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest.fixture
def premium_headers(premium_user: User) -> dict:
    return headers_for(premium_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


# ==================== ORGANISATIONS ====================

@pytest.fixture
async def organisation(db_session: AsyncSession, test_user: User):
    """Trialing organisation owned by ``test_user``"""
    return await organisation_service.create_organisation(
        db_session, test_user, OrganisationCreate(name=fake.company(), max_seats=3)
    )


# ==================== QUIZZES ====================

@pytest.fixture
def quiz_payload() -> Callable[..., Dict[str, Any]]:
    """Builder for a complete 4 x 6 + people's round quiz body"""
    def build(slug: Optional[str] = None, title: str = "Weekly Quiz", standard_rounds: int = 4) -> Dict[str, Any]:
        categories = ["History", "Science", "Sport", "Music"]
        rounds = [
            {
                "round_number": n,
                "title": f"Round {n}",
                "category": categories[(n - 1) % len(categories)],
                "questions": [
                    {"text": f"Question {n}.{q}?", "answer": f"Answer {n}.{q}"}
                    for q in range(1, 7)
                ],
            }
            for n in range(1, standard_rounds + 1)
        ]
        rounds.append({
            "round_number": standard_rounds + 1,
            "title": "People's Round",
            "category": "People",
            "is_peoples_round": True,
            "questions": [{"text": "Who painted the Mona Lisa?", "answer": "Leonardo da Vinci"}],
        })
        body: Dict[str, Any] = {"title": title, "blurb": fake.sentence(), "rounds": rounds}
        if slug:
            body["slug"] = slug
        return body
    return build


@pytest.fixture
def quiz_factory(db_session: AsyncSession) -> Callable:
    """Insert a quiz directly: ``await quiz_factory('12', status=QuizStatus.PUBLISHED)``"""
    async def create(slug: str, status: QuizStatus = QuizStatus.PUBLISHED, published_at: Optional[datetime] = None) -> Quiz:
        quiz = Quiz(
            slug=slug,
            title=f"Quiz {slug}",
            status=status,
            published_at=published_at or (datetime.utcnow() - timedelta(days=1)
                                          if status == QuizStatus.PUBLISHED else None),
            rounds=[
                QuizRound(
                    round_number=n,
                    title=f"Round {n}",
                    category="General",
                    questions=[Question(text=f"Q{n}.{q}", answer=f"A{n}.{q}", order=q) for q in range(1, 7)],
                )
                for n in range(1, 5)
            ] + [
                QuizRound(
                    round_number=5,
                    title="People's Round",
                    is_peoples_round=True,
                    questions=[Question(text="Who?", answer="Them", order=1)],
                )
            ],
        )
        db_session.add(quiz)
        await db_session.commit()
        return quiz
    return create


@pytest.fixture
async def published_quiz(quiz_factory) -> Quiz:
    return await quiz_factory("1")
