from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stickerpipe.core.models import (
    AnimationFormat,
    GifAnimation,
    MatrixConfig,
    Rgb,
    WebpAnimation,
)


class Settings(BaseSettings):
    matrix_homeserver_url: str = Field(
        default="https://matrix.org",
        alias="MATRIX_HOMESERVER_URL",
    )
    matrix_access_token: str = Field(
        default="",
        alias="MATRIX_ACCESS_TOKEN",
    )
    upload_cache_db_path: str | None = Field(
        default="data/upload_cache.db",
        validation_alias=AliasChoices("UPLOAD_CACHE_DB_PATH", "DATABASE_PATH"),
        description="上传缓存 sqlite 路径，设为空字符串则不使用缓存。",
    )
    worker_threads: int = Field(default=4, ge=1, alias="WORKER_THREADS")
    sticker_max_width: int | None = Field(default=256, ge=1, alias="STICKER_MAX_WIDTH")
    sticker_max_height: int | None = Field(default=256, ge=1, alias="STICKER_MAX_HEIGHT")
    animation_format: Literal["webp", "gif"] = Field(default="webp", alias="ANIMATION_FORMAT")
    gif_transparent_color: str = Field(default="#000000", alias="GIF_TRANSPARENT_COLOR")
    http_timeout_seconds: float = Field(default=30.0, gt=0, alias="HTTP_TIMEOUT_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("gif_transparent_color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        Rgb.from_hex(value)
        return value

    @field_validator("upload_cache_db_path")
    @classmethod
    def _empty_path_disables_cache(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    def build_animation_format(self) -> AnimationFormat:
        if self.animation_format == "gif":
            return GifAnimation(transparent_color=Rgb.from_hex(self.gif_transparent_color))
        return WebpAnimation()

    def build_matrix_config(self) -> MatrixConfig:
        return MatrixConfig(
            homeserver_url=self.matrix_homeserver_url,
            access_token=self.matrix_access_token,
        )
