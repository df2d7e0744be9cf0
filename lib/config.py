from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra='ignore')

    # Z-API (WhatsApp gateway) settings
    zapi_url: str = ''
    zapi_client_token: str = ''

    # OpenAI settings
    openai_api_key: str = ''
    openai_model: str = 'gpt-4o-mini'
    plan_max_tokens: int = 800
    answer_max_tokens: int = 500

    # Supabase settings
    supabase_url: str = ''
    supabase_key: str = ''
    plans_bucket: str = 'plans'

    # Payment
    payment_link: str = 'https://mbway.pt/pagar/fitai'

    # Seconds allowed for any single call to an external service
    external_call_timeout: float = 30.0

    port: int = 3000

    @property
    def has_record_store_credentials(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

def get_settings() -> Settings:
    return Settings()
