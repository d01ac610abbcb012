from app.services.quiz_service import QuizService, quiz_service
from app.services.achievement_service import AchievementService, achievement_service
from app.services.referral_service import ReferralService, referral_service
from app.services.league_service import LeagueService, league_service
from app.services.completion_service import CompletionService, completion_service
from app.services.organisation_service import OrganisationService, organisation_service
from app.services.leaderboard_service import LeaderboardService, leaderboard_service
from app.services.billing_service import BillingService, billing_service

__all__ = [
    # Quizzes & completions
    "QuizService",
    "quiz_service",
    "CompletionService",
    "completion_service",
    "AchievementService",
    "achievement_service",
    # Social
    "LeagueService",
    "league_service",
    "LeaderboardService",
    "leaderboard_service",
    "OrganisationService",
    "organisation_service",
    # Billing & referrals
    "BillingService",
    "billing_service",
    "ReferralService",
    "referral_service",
]
