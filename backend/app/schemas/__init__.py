# Pydantic schemas
from app.schemas.auth import (
    UserRegister,
    UserLogin,
    RefreshTokenRequest,
    Token,
    UserResponse,
    LoginResponse,
    UserProfileUpdate,
    ReferralSummary,
)
from app.schemas.organisation import (
    OrganisationCreate,
    OrganisationResponse,
    OrganisationDetailResponse,
    MyOrganisationResponse,
    SeatSummary,
    MemberInvite,
    MemberUpdate,
    MemberResponse,
    MemberListResponse,
    GroupCreate,
    GroupResponse,
    GroupMemberAdd,
    GroupMemberResponse,
    ActivityResponse,
)
from app.schemas.leaderboard import (
    LeaderboardCreate,
    LeaderboardResponse,
    LeaderboardSummary,
    MyLeaderboardsResponse,
    StandingsResponse,
)
from app.schemas.league import (
    LeagueCreate,
    LeagueUpdate,
    LeagueJoinRequest,
    JoinByCodeRequest,
    LeagueResponse,
    LeagueDetailResponse,
    LeagueListResponse,
    LeagueStatsResponse,
)
from app.schemas.quiz import (
    QuizCreate,
    QuizUpdate,
    QuizResponse,
    QuizSummary,
    QuizListResponse,
    CompletionCreate,
    CompletionResponse,
    CompletionResult,
)
from app.schemas.achievement import (
    AchievementCreate,
    AchievementUpdate,
    AchievementResponse,
    UserAchievementStatus,
    AchievementStatsResponse,
)
from app.schemas.billing import (
    OfferCodeCreate,
    OfferCodeUpdate,
    OfferCodeResponse,
    OfferCodeValidateRequest,
    OfferCodeValidateResponse,
    CheckoutRequest,
    CheckoutResponse,
    SubscriptionResponse,
    InvoiceResponse,
)
