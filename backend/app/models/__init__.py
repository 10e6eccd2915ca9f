from app.models.auth import AuthIdentity, AuthSession
from app.models.profile import Profile
from app.models.goal import Goal, Step, GOAL_STATUSES
from app.models.chat import ChatSession, Message
