"""
Configuration settings for the MyApp operator.
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    APP_NAME: str = Field(default="myapp-operator", description="Application name")
    APP_ENV: str = Field(default="dev", description="Environment: dev|staging|prod")

    # HTTP Configuration (health probes)
    HTTP_PORT: int = Field(default=8081, description="Probe server port")

    # Kubernetes Configuration
    WATCH_NAMESPACE: str = Field(default="", description="Namespace to watch, empty for all namespaces")
    K8S_CONTEXT: Optional[str] = Field(default=None, description="Kubernetes context")
    K8S_IN_CLUSTER: bool = Field(default=False, description="Running in cluster")

    # Parent resource
    MYAPP_GROUP: str = Field(default="app.shimo.im", description="MyApp API group")
    MYAPP_VERSION: str = Field(default="v1beta1", description="MyApp API version")
    MYAPP_PLURAL: str = Field(default="myapps", description="MyApp plural name")
    MYAPP_KIND: str = Field(default="MyApp", description="MyApp kind")

    # Controller Configuration
    WORKERS: int = Field(default=2, ge=1, description="Concurrent reconcile workers")
    BACKOFF_BASE_SECS: float = Field(default=0.5, gt=0, description="First requeue delay after a failed reconcile")
    BACKOFF_MAX_SECS: float = Field(default=300.0, gt=0, description="Maximum requeue delay")
    WATCH_TIMEOUT_SECS: int = Field(default=300, ge=1, description="Server-side watch timeout")
    LOG_LEVEL: str = Field(default="info", description="Log level: info|debug|warning")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
