"""
Unit tests for ConfigManager class.
"""
import logging
import unittest

from flashquiz.config_manager import ConfigManager
from flashquiz.models import TimerMode


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        settings = self.config_manager.get_quiz_settings()

        self.assertEqual(settings.timer_mode, "question")
        self.assertEqual(settings.question_timer, 0)
        self.assertEqual(settings.test_timer, 0)
        self.assertFalse(settings.music_enabled)
        self.assertEqual(settings.effective_timer_mode, TimerMode.DISABLED)
        self.assertEqual(self.config_manager.get_api_base_url(), "http://127.0.0.1:3001")
        self.assertEqual(self.config_manager.get_api_timeout_ms(), 15000)
        self.assertEqual(self.config_manager.get_storage_path(), "./storage/flashquiz.json")

    def test_get_quiz_settings_returns_copy(self):
        """Test that callers cannot mutate the stored settings."""
        settings = self.config_manager.get_quiz_settings()
        settings.test_timer = 30
        self.assertEqual(self.config_manager.get_quiz_settings().test_timer, 0)

    def test_set_question_timer_presets(self):
        """Test that every preset and zero are accepted."""
        for seconds in ConfigManager.QUESTION_TIMER_PRESETS + (0,):
            with self.subTest(seconds=seconds):
                result = self.config_manager.set_question_timer(seconds)
                self.assertTrue(result['success'])
                self.assertEqual(self.config_manager.get_quiz_settings().question_timer, seconds)

    def test_set_question_timer_invalid_values(self):
        """Test that non-preset values are rejected."""
        for value in (7, -5, 31, "10", 10.0, True):
            with self.subTest(value=value):
                result = self.config_manager.set_question_timer(value)
                self.assertFalse(result['success'])
                self.assertIn('user_message', result)
        self.assertEqual(self.config_manager.get_quiz_settings().question_timer, 0)

    def test_toggle_question_timer_preset(self):
        """Test that selecting the active preset turns the timer off."""
        self.config_manager.toggle_question_timer_preset(15)
        self.assertEqual(self.config_manager.get_quiz_settings().question_timer, 15)

        self.config_manager.toggle_question_timer_preset(15)
        self.assertEqual(self.config_manager.get_quiz_settings().question_timer, 0)

    def test_set_test_timer_bounds(self):
        """Test the whole-test timer range."""
        self.assertTrue(self.config_manager.set_test_timer(0)['success'])
        self.assertTrue(self.config_manager.set_test_timer(60)['success'])
        self.assertFalse(self.config_manager.set_test_timer(61)['success'])
        self.assertFalse(self.config_manager.set_test_timer(-1)['success'])
        self.assertFalse(self.config_manager.set_test_timer("5")['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().test_timer, 60)

    def test_adjust_test_timer_clamps(self):
        """Test stepping the test timer stays within range."""
        self.config_manager.adjust_test_timer(-1)
        self.assertEqual(self.config_manager.get_quiz_settings().test_timer, 0)

        self.config_manager.set_test_timer(59)
        self.config_manager.adjust_test_timer(5)
        self.assertEqual(self.config_manager.get_quiz_settings().test_timer, 60)

    def test_timer_mode(self):
        """Test switching between question and test timing."""
        self.config_manager.set_question_timer(10)
        self.config_manager.set_test_timer(5)
        self.assertEqual(self.config_manager.get_quiz_settings().effective_timer_mode, TimerMode.PER_QUESTION)

        self.assertTrue(self.config_manager.set_timer_mode("test")['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().effective_timer_mode, TimerMode.WHOLE_TEST)

        self.assertFalse(self.config_manager.set_timer_mode("lap")['success'])
        self.assertEqual(self.config_manager.get_quiz_settings().timer_mode, "test")

    def test_music_toggle(self):
        """Test turning music on and off."""
        self.assertTrue(self.config_manager.toggle_music()['success'])
        self.assertTrue(self.config_manager.get_quiz_settings().music_enabled)
        self.assertFalse(self.config_manager.set_music_enabled("yes")['success'])

    def test_lock_rejects_changes(self):
        """Test that settings are frozen while locked."""
        self.config_manager.lock()
        self.assertTrue(self.config_manager.is_locked)

        for result in (
            self.config_manager.set_timer_mode("test"),
            self.config_manager.set_question_timer(10),
            self.config_manager.set_test_timer(5),
            self.config_manager.set_music_enabled(True),
        ):
            self.assertFalse(result['success'])
            self.assertEqual(result['user_message'], ConfigManager.LOCKED_MESSAGE)

        self.config_manager.unlock()
        self.assertTrue(self.config_manager.set_test_timer(5)['success'])

    def test_set_api_base_url(self):
        """Test backend URL validation and normalization."""
        result = self.config_manager.set_api_base_url("https://api.example.com/")
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_api_base_url(), "https://api.example.com")

        self.assertFalse(self.config_manager.set_api_base_url("")['success'])
        self.assertFalse(self.config_manager.set_api_base_url("ftp://x")['success'])

    def test_apply_config(self):
        """Test applying a parsed config.json."""
        errors = self.config_manager.apply_config({
            'api': {'base_url': "http://backend:3001", 'timeout_ms': 5000},
            'storage': {'path': "/tmp/flashquiz.json"},
            'quiz': {'timer_mode': "test", 'test_timer': 10, 'music_enabled': True},
        })

        self.assertEqual(errors, [])
        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.timer_mode, "test")
        self.assertEqual(settings.test_timer, 10)
        self.assertTrue(settings.music_enabled)
        self.assertEqual(self.config_manager.get_api_base_url(), "http://backend:3001")
        self.assertEqual(self.config_manager.get_api_timeout_ms(), 5000)
        self.assertEqual(self.config_manager.get_storage_path(), "/tmp/flashquiz.json")

    def test_apply_config_reports_invalid_entries(self):
        """Test that bad entries are skipped while good ones apply."""
        errors = self.config_manager.apply_config({
            'api': {'timeout_ms': -1},
            'quiz': {'question_timer': 7, 'test_timer': 15},
        })

        self.assertEqual(len(errors), 2)
        self.assertEqual(self.config_manager.get_quiz_settings().test_timer, 15)
        self.assertEqual(self.config_manager.get_api_timeout_ms(), 15000)

    def test_reset_to_defaults(self):
        """Test resetting all settings."""
        self.config_manager.set_test_timer(20)
        self.config_manager.set_api_base_url("http://other")
        self.config_manager.lock()

        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_quiz_settings().test_timer, 0)
        self.assertEqual(self.config_manager.get_api_base_url(), ConfigManager.DEFAULT_API_BASE_URL)
        self.assertFalse(self.config_manager.is_locked)

    def test_validate_settings(self):
        """Test validation of current and corrupted settings."""
        self.assertTrue(self.config_manager.validate_settings()['valid'])

        self.config_manager._global_settings.question_timer = 7
        self.config_manager._global_settings.test_timer = 90
        result = self.config_manager.validate_settings()
        self.assertFalse(result['valid'])
        self.assertEqual(len(result['issues']), 2)

        messages = self.config_manager.get_user_friendly_validation_errors()
        self.assertTrue(any("Question Timer Issue" in m for m in messages))
        self.assertTrue(any("Test Timer Issue" in m for m in messages))

    def test_settings_summary(self):
        """Test the human-readable summary."""
        self.assertIn("Timer: off", self.config_manager.get_settings_summary())

        self.config_manager.set_question_timer(20)
        self.assertIn("20 seconds per question", self.config_manager.get_settings_summary())

        self.config_manager.set_timer_mode("test")
        self.config_manager.set_test_timer(5)
        self.assertIn("5 minutes for the whole test", self.config_manager.get_settings_summary())


if __name__ == '__main__':
    unittest.main()
