import logging

from supabase import create_client

from api.conversation import ConversationHandler
from api.services.documents import PlanDocumentService
from api.services.fulfillment import PlanPipeline
from api.services.messaging import MessagingService
from api.services.plan_author import PlanAuthorService
from api.services.storage import StorageService
from api.webhook_handler import WebhookHandler
from lib.client_locks import ClientLocks
from lib.config import Settings
from lib.error_handler import ConfigurationError
from lib.openai_client import OpenAIClient
from lib.zapi_client import ZAPIClient

logger = logging.getLogger(__name__)

def build_webhook_handler(settings: Settings) -> WebhookHandler:
    """Wire every service from settings. Missing credentials stop startup."""
    timeout = settings.external_call_timeout

    logger.info("Initializing Supabase client...")
    if not settings.has_record_store_credentials:
        logger.error("SUPABASE_URL and SUPABASE_KEY must be set")
        raise ConfigurationError("Supabase credentials not configured")
    try:
        supabase = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing Supabase client: {str(e)}")
        raise

    logger.info("Initializing Z-API client...")
    zapi_client = ZAPIClient(settings.zapi_url, settings.zapi_client_token, timeout=timeout)
    logger.info("Z-API client initialized successfully")

    logger.info("Initializing OpenAI client...")
    openai_client = OpenAIClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=timeout
    )
    logger.info("OpenAI client initialized successfully")

    logger.info("Initializing services...")
    storage_service = StorageService(
        supabase_client=supabase,
        plans_bucket=settings.plans_bucket,
        timeout=timeout
    )
    messaging_service = MessagingService(
        zapi_client=zapi_client,
        storage_service=storage_service
    )
    plan_author = PlanAuthorService(
        openai_client=openai_client,
        plan_max_tokens=settings.plan_max_tokens,
        answer_max_tokens=settings.answer_max_tokens
    )
    document_service = PlanDocumentService(
        storage_service=storage_service,
        timeout=timeout
    )
    plan_pipeline = PlanPipeline(
        storage_service=storage_service,
        plan_author=plan_author,
        document_service=document_service,
        messaging_service=messaging_service
    )
    conversation_handler = ConversationHandler(
        storage_service=storage_service,
        messaging_service=messaging_service,
        plan_author=plan_author,
        plan_pipeline=plan_pipeline,
        client_locks=ClientLocks(),
        payment_link=settings.payment_link
    )
    logger.info("All services initialized successfully")

    return WebhookHandler(conversation_handler)
