from .user import User
from .session import Session
from .google_account import GoogleAccount
from .email import Email
from .event import Event
from .task import Task
from .chat import ChatMessage
from .draft import Draft
from .action import Action
