from whatsapp_kit.services.agent_service import AgentConfig, AgentResponse, WhatsAppAgent
from whatsapp_kit.services.context_store import ContextStore, Role, Turn
from whatsapp_kit.services.event_dispatcher import Condition, EventDispatcher
from whatsapp_kit.services.event_normalizer import normalize_event, parse_timestamp
from whatsapp_kit.services.events import EventData, WhatsAppEvent, WorkflowEvent
from whatsapp_kit.services.otp_service import OTPConfig, OTPService, OTPStatus
from whatsapp_kit.services.otp_store import OTPChallenge, OTPStore
from whatsapp_kit.services.payment_service import PaymentConfig, PaymentError, PaymentProvider, PaymentService
from whatsapp_kit.services.result import Result
from whatsapp_kit.services.signature import verify_signature
from whatsapp_kit.services.store import ExpiringStore
from whatsapp_kit.services.workflow_service import AutomationWebhookError, WorkflowConfig, WorkflowService
