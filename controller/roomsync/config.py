from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    mqtt_broker_host: str
    mqtt_broker_port: int = 1883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_client_id_prefix: str = "roomsync-controller"
    mqtt_keepalive: int = 60
    mqtt_qos: int = 0
    mqtt_publish_timeout: float = 10.0
    mqtt_reconnect_delay: float = 5.0
    mqtt_tls_ca_pem: str | None = None
    mqtt_tls_cert_pem: str | None = None
    mqtt_tls_key_pem: str | None = None
    relay_topic: str = "myhome/room/relay/set"
    led_topic: str = "myhome/room/led/set"
    manual_mode_topic: str = "myhome/room/led/manual"
    metrics_topic: str = "myhome/room/metrics"
    fetch_topic: str = "myhome/room/fetch"
    relay_field: str = "Relay"
    manual_mode_field: str = "ManualMode"
    led_field: str = "LED2"
    database_url: str | None = None
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    allowed_origins: str = "*"
    log_level: str = "INFO"

    class Config:
        env_prefix = ""
        case_sensitive = False

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
