from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_path: str = "models/FSRCNN-small_x2_no_unsqueeze.onnx"

    # Only every Nth delivered frame is considered for enhancement
    decimation_factor: int = Field(default=5, gt=0)
    # Frames scoring *below* this Laplacian variance are enhanced
    blur_threshold: float = Field(default=1000.0, ge=0.0)

    # Fixed input contract of the super-resolution network (NCHW 1x1x240x320)
    model_input_width: int = 320
    model_input_height: int = 240
    upscale_factor: int = 2

    # Resolution the camera collaborator is asked to deliver
    source_width: int = 640
    source_height: int = 480

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=(),
    )

    @property
    def model_output_width(self) -> int:
        return self.model_input_width * self.upscale_factor

    @property
    def model_output_height(self) -> int:
        return self.model_input_height * self.upscale_factor


@lru_cache
def get_settings() -> Settings:
    return Settings()
