"""
Settings management for Slidecast.

This module provides simple accessor functions for configuration values.
All configuration is stored in YAML files (default.yaml, config.yaml).
"""

import logging
from typing import Dict, Any, List

from .config import ConfigLoader

logger = logging.getLogger(__name__)

# Single source of configuration
_config_loader = ConfigLoader()


def reload() -> None:
    """Re-read configuration files and environment overrides"""
    _config_loader.reload()


# ============================================================================
# Section Accessors - Get entire configuration sections
# ============================================================================

def get_app_config() -> Dict[str, Any]:
    """Get application settings"""
    return _config_loader.get_section('app') or {}


def get_video_config() -> Dict[str, Any]:
    """Get video output configuration"""
    return _config_loader.get_section('video') or {}


def get_encoder_config() -> Dict[str, Any]:
    """Get encoder (ffmpeg) configuration"""
    return _config_loader.get_section('encoder') or {}


def get_ffprobe_config() -> Dict[str, Any]:
    """Get ffprobe configuration"""
    media_cfg = _config_loader.get_section('media') or {}
    return media_cfg.get('ffprobe', {}) or {}


def get_text_overlay_config() -> Dict[str, Any]:
    """Get text overlay configuration"""
    return _config_loader.get_section('text_overlay') or {}


def get_ken_burns_config() -> Dict[str, Any]:
    """Get Ken Burns motion configuration"""
    return _config_loader.get_section('ken_burns') or {}


def get_storage_config() -> Dict[str, Any]:
    """Get output storage configuration"""
    return _config_loader.get_section('storage') or {}


# ============================================================================
# Helpers
# ============================================================================

def _as_float(value: Any, default: float, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name} value '{value}' in configuration. Falling back to {default}.")
        return default


def _as_int(value: Any, default: int, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name} value '{value}' in configuration. Falling back to {default}.")
        return default


# ============================================================================
# App
# ============================================================================

def get_service_base_url() -> str:
    """Base URL used to build absolute download URLs (empty = disabled)"""
    return str(get_app_config().get('service_base_url', '') or '').rstrip('/')


# ============================================================================
# Video
# ============================================================================

def get_default_video_quality() -> str:
    return get_video_config().get('default_quality', 'medium')


def get_default_orientation() -> str:
    return get_video_config().get('default_orientation', 'horizontal')


def get_default_output_format() -> str:
    return get_video_config().get('default_output_format', 'mp4')


def get_default_transition_type() -> str:
    """Get default xfade transition type"""
    return get_video_config().get('transition', {}).get('type', 'fade')


def get_default_transition_duration() -> float:
    """Get default transition duration in seconds"""
    value = get_video_config().get('transition', {}).get('duration', 1.0)
    return _as_float(value, 1.0, 'transition duration')


def get_resolution_presets(orientation: str = "horizontal") -> Dict[str, str]:
    """
    Get quality -> "W:H" presets for an orientation.

    Args:
        orientation: 'horizontal' or 'vertical'

    Returns:
        dict: Mapping of quality name to resolution string
    """
    defaults = {
        'horizontal': {'low': '640:480', 'medium': '1280:720', 'high': '1920:1080'},
        'vertical': {'low': '480:640', 'medium': '720:1280', 'high': '1080:1920'},
    }
    key = 'vertical' if orientation == 'vertical' else 'horizontal'
    presets = get_video_config().get('resolutions', {}).get(key)
    return presets or defaults[key]


# ============================================================================
# Encoder
# ============================================================================

def get_ffmpeg_binary() -> str:
    return get_encoder_config().get('ffmpeg_binary', 'ffmpeg')


def get_video_codec() -> str:
    return get_encoder_config().get('video_codec', 'libx264')


def get_audio_codec() -> str:
    return get_encoder_config().get('audio_codec', 'aac')


def get_pix_fmt() -> str:
    return get_encoder_config().get('pix_fmt', 'yuv420p')


def get_encoder_timeout_seconds() -> float:
    """Get encoder wall-clock limit in seconds (0 = no limit)"""
    value = _as_float(get_encoder_config().get('timeout_seconds', 0), 0.0, 'encoder timeout')
    return max(0.0, value)


def get_encoder_poll_interval_seconds() -> float:
    """How often a running encoder is checked for cancellation"""
    value = _as_float(get_encoder_config().get('poll_interval_seconds', 0.5), 0.5, 'poll interval')
    return value if value > 0 else 0.5


def get_debug_command_dir() -> str:
    """Directory for filter/command debug files (empty = disabled)"""
    return str(get_encoder_config().get('debug_command_dir', '') or '')


def get_stderr_tail_lines() -> int:
    return max(1, _as_int(get_encoder_config().get('stderr_tail_lines', 40), 40, 'stderr tail lines'))


# ============================================================================
# FFprobe
# ============================================================================

def get_ffprobe_binary() -> str:
    return get_ffprobe_config().get('binary', 'ffprobe')


def get_ffprobe_timeout_seconds() -> int:
    """Get ffprobe timeout in seconds (minimum 1, default 30)"""
    timeout_value = _as_int(get_ffprobe_config().get('timeout_seconds', 30), 30, 'ffprobe timeout')
    return max(1, timeout_value)


# ============================================================================
# Text overlay
# ============================================================================

def get_default_font_size() -> int:
    return _as_int(get_text_overlay_config().get('default_font_size', 40), 40, 'font size')


def get_default_font_color() -> str:
    return get_text_overlay_config().get('default_font_color', 'white')


def get_default_text_position() -> str:
    return get_text_overlay_config().get('default_position', 'center')


def get_text_margin() -> int:
    """Margin in pixels between anchored text and the frame edge"""
    return _as_int(get_text_overlay_config().get('margin', 20), 20, 'text margin')


def get_default_font_file() -> str:
    return str(get_text_overlay_config().get('default_font_file', '') or '')


def get_font_directories() -> List[str]:
    return list(get_text_overlay_config().get('font_directories', []) or [])


# ============================================================================
# Ken Burns
# ============================================================================

def is_ken_burns_enabled() -> bool:
    return bool(get_ken_burns_config().get('enabled', False))


def get_ken_burns_style() -> str:
    return get_ken_burns_config().get('style', 'random')


def get_ken_burns_intensity() -> str:
    return get_ken_burns_config().get('intensity', 'moderate')


def get_default_framerate() -> int:
    """Framerate assumed for zoompan frame counts when none is configured"""
    return _as_int(get_ken_burns_config().get('default_framerate', 24), 24, 'framerate')


# ============================================================================
# Storage
# ============================================================================

def get_output_root() -> str:
    return get_storage_config().get('output_root', 'storage/pipeline/videos')


def get_public_url_prefix() -> str:
    return str(get_storage_config().get('public_url_prefix', '/storage/pipeline/videos')).rstrip('/')
