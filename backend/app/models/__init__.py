# Re-export all models for convenient imports (and so Base.metadata sees every table)
from app.models.user import User, UserRole, UserTier, UserSubscriptionStatus
from app.models.organisation import (
    Organisation,
    OrganisationPlan,
    OrganisationStatus,
    OrganisationMember,
    OrganisationMemberRole,
    OrganisationMemberStatus,
    OrganisationGroup,
    OrganisationGroupType,
    OrganisationGroupMember,
    OrganisationActivity,
    OrganisationActivityType,
)
from app.models.leaderboard import Leaderboard, LeaderboardMember, LeaderboardVisibility
from app.models.league import PrivateLeague, PrivateLeagueMember, PrivateLeagueStats
from app.models.quiz import Quiz, QuizRound, Question, QuizCompletion, QuizStatus
from app.models.achievement import Achievement, UserAchievement, AchievementRarity, UnlockConditionType
from app.models.billing import (
    Subscription,
    SubscriptionStatus,
    Invoice,
    InvoiceStatus,
    OfferCode,
    OfferCodeRedemption,
    DiscountType,
    PlanCode,
)
from app.models.referral import Referral, ReferralStatus
from app.models.audit_log import AuditLog

__all__ = [
    # User
    "User",
    "UserRole",
    "UserTier",
    "UserSubscriptionStatus",
    # Organisation
    "Organisation",
    "OrganisationPlan",
    "OrganisationStatus",
    "OrganisationMember",
    "OrganisationMemberRole",
    "OrganisationMemberStatus",
    "OrganisationGroup",
    "OrganisationGroupType",
    "OrganisationGroupMember",
    "OrganisationActivity",
    "OrganisationActivityType",
    # Leaderboards & leagues
    "Leaderboard",
    "LeaderboardMember",
    "LeaderboardVisibility",
    "PrivateLeague",
    "PrivateLeagueMember",
    "PrivateLeagueStats",
    # Quizzes
    "Quiz",
    "QuizRound",
    "Question",
    "QuizCompletion",
    "QuizStatus",
    # Achievements
    "Achievement",
    "UserAchievement",
    "AchievementRarity",
    "UnlockConditionType",
    # Billing
    "Subscription",
    "SubscriptionStatus",
    "Invoice",
    "InvoiceStatus",
    "OfferCode",
    "OfferCodeRedemption",
    "DiscountType",
    "PlanCode",
    # Referrals
    "Referral",
    "ReferralStatus",
    # Audit
    "AuditLog",
]
