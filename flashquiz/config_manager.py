"""
Configuration manager for quiz timer settings and app parameters.
"""
import logging
from typing import Dict, Any, List

from .models import QuizSettings, TimerMode


class ConfigManager:
    """Manages quiz settings and backend/storage configuration."""

    # Default configuration values
    DEFAULT_TIMER_MODE = "question"
    DEFAULT_QUESTION_TIMER = 0  # disabled
    DEFAULT_TEST_TIMER = 0  # disabled
    DEFAULT_MUSIC_ENABLED = False
    DEFAULT_API_BASE_URL = "http://127.0.0.1:3001"
    DEFAULT_API_TIMEOUT_MS = 15000
    DEFAULT_STORAGE_PATH = "./storage/flashquiz.json"

    # Validation limits
    TIMER_MODES = ("question", "test")
    QUESTION_TIMER_PRESETS = (5, 10, 15, 20, 25, 30)
    MIN_TEST_TIMER = 0
    MAX_TEST_TIMER = 60  # minutes

    LOCKED_MESSAGE = "❌ Settings can't be changed while a quiz is in progress"

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings()
        self._api_base_url = self.DEFAULT_API_BASE_URL
        self._api_timeout_ms = self.DEFAULT_API_TIMEOUT_MS
        self._storage_path = self.DEFAULT_STORAGE_PATH
        self._locked = False

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get a copy of the current quiz settings.

        Returns:
            QuizSettings object with current configuration
        """
        return QuizSettings(
            timer_mode=self._global_settings.timer_mode,
            question_timer=self._global_settings.question_timer,
            test_timer=self._global_settings.test_timer,
            music_enabled=self._global_settings.music_enabled
        )

    def lock(self) -> None:
        """Freeze quiz settings while a session is active."""
        self._locked = True
        self.logger.debug("Quiz settings locked")

    def unlock(self) -> None:
        """Allow quiz settings to change again."""
        self._locked = False
        self.logger.debug("Quiz settings unlocked")

    @property
    def is_locked(self) -> bool:
        return self._locked

    def _locked_result(self, setting: str) -> Dict[str, Any]:
        error_msg = f"Cannot change {setting} during an active quiz"
        self.logger.warning(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': self.LOCKED_MESSAGE
        }

    def set_timer_mode(self, mode: str) -> Dict[str, Any]:
        """
        Choose between a per-question timer and a whole-test timer.

        Args:
            mode: 'question' or 'test'

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if self._locked:
            return self._locked_result("timer mode")

        if not isinstance(mode, str) or mode not in self.TIMER_MODES:
            error_msg = f"Timer mode must be one of {', '.join(self.TIMER_MODES)}, got {mode!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid timer mode: choose 'question' or 'test'"
            }

        self._global_settings.timer_mode = mode
        self.logger.info(f"Timer mode set to {mode}")
        return {
            'success': True,
            'message': f"Timer mode set to {mode}",
            'user_message': f"✅ Timer mode set to {mode}"
        }

    def set_question_timer(self, seconds: int) -> Dict[str, Any]:
        """
        Set the per-question countdown.

        Args:
            seconds: One of QUESTION_TIMER_PRESETS, or 0 to disable

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if self._locked:
            return self._locked_result("question timer")

        if not isinstance(seconds, int) or isinstance(seconds, bool):
            error_msg = f"Question timer must be an integer, got {type(seconds).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            }

        if seconds != 0 and seconds not in self.QUESTION_TIMER_PRESETS:
            presets = ", ".join(str(p) for p in self.QUESTION_TIMER_PRESETS)
            error_msg = f"Question timer must be 0 or one of {presets} seconds, got {seconds}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Pick a question timer of {presets} seconds, or turn it off"
            }

        self._global_settings.question_timer = seconds
        if seconds == 0:
            self.logger.info("Question timer disabled")
            return {
                'success': True,
                'message': "Question timer disabled",
                'user_message': "✅ Question timer turned off"
            }

        self.logger.info(f"Question timer set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Question timer set to {seconds} seconds",
            'user_message': f"✅ Question timer set to {seconds}s"
        }

    def toggle_question_timer_preset(self, seconds: int) -> Dict[str, Any]:
        """Select a preset, or turn the timer off if that preset is already selected."""
        if self._global_settings.question_timer == seconds:
            return self.set_question_timer(0)
        return self.set_question_timer(seconds)

    def set_test_timer(self, minutes: int) -> Dict[str, Any]:
        """
        Set the whole-test countdown.

        Args:
            minutes: 0 (no limit) through MAX_TEST_TIMER

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if self._locked:
            return self._locked_result("test timer")

        if not isinstance(minutes, int) or isinstance(minutes, bool):
            error_msg = f"Test timer must be an integer, got {type(minutes).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(minutes).__name__}"
            }

        if minutes < self.MIN_TEST_TIMER or minutes > self.MAX_TEST_TIMER:
            error_msg = f"Test timer must be between {self.MIN_TEST_TIMER} and {self.MAX_TEST_TIMER} minutes"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Test timer must be between {self.MIN_TEST_TIMER} and {self.MAX_TEST_TIMER} minutes"
            }

        self._global_settings.test_timer = minutes
        label = "No limit" if minutes == 0 else f"{minutes}:00 mins."
        self.logger.info(f"Test timer set to {minutes} minutes")
        return {
            'success': True,
            'message': f"Test timer set to {minutes} minutes",
            'user_message': f"✅ Test timer: {label}"
        }

    def adjust_test_timer(self, delta: int) -> Dict[str, Any]:
        """Step the test timer up or down, clamped to the allowed range."""
        current = self._global_settings.test_timer
        target = max(self.MIN_TEST_TIMER, min(self.MAX_TEST_TIMER, current + delta))
        return self.set_test_timer(target)

    def set_music_enabled(self, enabled: bool) -> Dict[str, Any]:
        """Turn background music on or off."""
        if self._locked:
            return self._locked_result("music setting")

        if not isinstance(enabled, bool):
            error_msg = f"Music setting must be a boolean, got {type(enabled).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected true/false, got {type(enabled).__name__}"
            }

        self._global_settings.music_enabled = enabled
        state = "on" if enabled else "off"
        self.logger.info(f"Music turned {state}")
        return {
            'success': True,
            'message': f"Music turned {state}",
            'user_message': f"✅ Music {state}"
        }

    def toggle_music(self) -> Dict[str, Any]:
        return self.set_music_enabled(not self._global_settings.music_enabled)

    def set_api_base_url(self, url: str) -> Dict[str, Any]:
        """Set the backend base URL."""
        if not isinstance(url, str) or not url.strip():
            error_msg = "API base URL cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ API base URL cannot be empty"
            }

        if not url.startswith(("http://", "https://")):
            error_msg = f"API base URL must start with http:// or https://, got {url}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid API URL: {url}"
            }

        self._api_base_url = url.rstrip("/")
        self.logger.info(f"API base URL set to {self._api_base_url}")
        return {
            'success': True,
            'message': f"API base URL set to {self._api_base_url}",
            'user_message': f"✅ Using backend {self._api_base_url}"
        }

    def get_api_base_url(self) -> str:
        return self._api_base_url

    def get_api_timeout_ms(self) -> int:
        return self._api_timeout_ms

    def get_storage_path(self) -> str:
        return self._storage_path

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply settings from a parsed config.json.

        Invalid entries are skipped and reported; valid ones still apply.

        Returns:
            List of error messages for rejected entries
        """
        errors = []

        api_config = config.get('api', {})
        if 'base_url' in api_config:
            result = self.set_api_base_url(api_config['base_url'])
            if not result['success']:
                errors.append(result['error'])
        timeout_ms = api_config.get('timeout_ms')
        if timeout_ms is not None:
            if isinstance(timeout_ms, int) and timeout_ms > 0:
                self._api_timeout_ms = timeout_ms
            else:
                errors.append(f"Invalid API timeout: {timeout_ms}")

        storage_path = config.get('storage', {}).get('path')
        if storage_path:
            self._storage_path = str(storage_path)

        quiz_config = config.get('quiz', {})
        setters = (
            ('timer_mode', self.set_timer_mode),
            ('question_timer', self.set_question_timer),
            ('test_timer', self.set_test_timer),
            ('music_enabled', self.set_music_enabled),
        )
        for key, setter in setters:
            if key in quiz_config:
                result = setter(quiz_config[key])
                if not result['success']:
                    errors.append(result['error'])

        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid configuration entries")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = QuizSettings(
            timer_mode=self.DEFAULT_TIMER_MODE,
            question_timer=self.DEFAULT_QUESTION_TIMER,
            test_timer=self.DEFAULT_TEST_TIMER,
            music_enabled=self.DEFAULT_MUSIC_ENABLED
        )
        self._api_base_url = self.DEFAULT_API_BASE_URL
        self._api_timeout_ms = self.DEFAULT_API_TIMEOUT_MS
        self._storage_path = self.DEFAULT_STORAGE_PATH
        self._locked = False
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._global_settings

        if settings.timer_mode not in self.TIMER_MODES:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid timer mode: {settings.timer_mode}")

        if (not isinstance(settings.question_timer, int) or
                (settings.question_timer != 0 and settings.question_timer not in self.QUESTION_TIMER_PRESETS)):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid question timer: {settings.question_timer}")

        if (not isinstance(settings.test_timer, int) or
                settings.test_timer < self.MIN_TEST_TIMER or
                settings.test_timer > self.MAX_TEST_TIMER):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid test timer: {settings.test_timer}")

        if not isinstance(settings.music_enabled, bool):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid music setting: {settings.music_enabled}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._global_settings
        effective = settings.effective_timer_mode
        if effective is TimerMode.PER_QUESTION:
            timer_str = f"{settings.question_timer} seconds per question"
        elif effective is TimerMode.WHOLE_TEST:
            timer_str = f"{settings.test_timer} minutes for the whole test"
        else:
            timer_str = "off"

        return (
            f"Quiz Settings:\n"
            f"• Timer mode: {settings.timer_mode}\n"
            f"• Timer: {timer_str}\n"
            f"• Music: {'on' if settings.music_enabled else 'off'}\n"
            f"• Backend: {self._api_base_url}"
        )

    def get_user_friendly_validation_errors(self) -> List[str]:
        """
        Get user-friendly validation error messages for current settings.

        Returns:
            List of user-friendly error messages
        """
        user_friendly_errors = []

        for issue in self.validate_settings().get("issues", []):
            if "question timer" in issue.lower():
                presets = ", ".join(str(p) for p in self.QUESTION_TIMER_PRESETS)
                user_friendly_errors.append(
                    f"❌ Question Timer Issue: {issue}. Please choose {presets} seconds or turn it off."
                )
            elif "test timer" in issue.lower():
                user_friendly_errors.append(
                    f"❌ Test Timer Issue: {issue}. "
                    f"Please set a value between {self.MIN_TEST_TIMER} and {self.MAX_TEST_TIMER} minutes."
                )
            elif "timer mode" in issue.lower():
                user_friendly_errors.append(
                    f"❌ Timer Mode Issue: {issue}. Please choose 'question' or 'test'."
                )
            else:
                user_friendly_errors.append(f"❌ Configuration Issue: {issue}")

        return user_friendly_errors
