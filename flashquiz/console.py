"""
Terminal front-end for FlashQuiz.

Commands:
- flashquiz quiz SET_ID      - Take a quiz on a set
- flashquiz history          - Show quiz history grouped by set
- flashquiz clear-history    - Delete quiz history
- flashquiz settings         - Show effective quiz settings
- flashquiz sign-in          - Store a session token for the backend
- flashquiz sign-out         - Forget the stored session
"""
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .api_client import FlashLearnClient
from .config_manager import ConfigManager
from .deck_loader import DeckLoader
from .models import AnswerRecord, Card, QuizMode, SessionPhase
from .pair_puzzle import PairPuzzle, PairSelectionResult
from .quiz_controller import PAIR_ERROR_DISPLAY_SECONDS, QuizController, QuizSession
from .result_store import ResultStore, group_records_by_set
from .storage import LocalStorage, StorageError, sign_in, sign_out

logger = logging.getLogger(__name__)

API_URL_ENV = "FLASHQUIZ_API_URL"
STORAGE_PATH_ENV = "FLASHQUIZ_STORAGE_PATH"

MODE_CHOICES = {
    "1": QuizMode.MULTIPLE_CHOICE,
    "2": QuizMode.TYPE_ANSWER,
    "3": QuizMode.PAIR,
    "4": QuizMode.REVIEW,
}

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
}


app = typer.Typer(
    name="flashquiz",
    help="FlashQuiz: quiz yourself on FlashLearn sets",
    no_args_is_help=True,
)
console = Console()


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load configuration from a JSON file; a missing file means defaults."""
    if not config_path.exists():
        return {}

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        console.print(f"[red]❌ Error: Invalid JSON in {config_path}: {e}[/red]")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]❌ Error loading {config_path}: {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(config, dict):
        console.print(f"[red]❌ Error: {config_path} must contain a JSON object[/red]")
        raise typer.Exit(1)
    return config


def setup_logging_from_config(config: Dict[str, Any]) -> None:
    """Set up logging based on configuration."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, str(log_config.get('level', 'WARNING')).upper(), logging.WARNING)
    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "flashquiz.log", encoding='utf-8')
        ]
    )
    logging.getLogger('httpx').setLevel(logging.WARNING)


class QuizConsole:
    """Wires the quiz components together and renders them in the terminal."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, output: Optional[Console] = None):
        self.config = config or {}
        self.console = output or console
        self.config_manager = ConfigManager()
        self.apply_configuration()
        self.storage = LocalStorage(self.config_manager.get_storage_path())
        self.result_store = ResultStore(self.storage)

    def apply_configuration(self) -> None:
        """Apply config.json values, then environment overrides."""
        for error in self.config_manager.apply_config(self.config):
            logger.warning(f"Configuration: {error}")

        api_url = os.getenv(API_URL_ENV)
        if api_url:
            result = self.config_manager.set_api_base_url(api_url)
            if not result['success']:
                logger.warning(f"Ignoring {API_URL_ENV}: {result['error']}")

        storage_path = os.getenv(STORAGE_PATH_ENV)
        if storage_path:
            self.config_manager.apply_config({'storage': {'path': storage_path}})

    async def _ask(self, prompt: str) -> str:
        # Prompt in a worker thread so timer callbacks keep firing on the loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: Prompt.ask(prompt, console=self.console, default="", show_default=False)
        )

    async def run_quiz(
        self,
        set_id: str,
        set_name: Optional[str] = None,
        mode: Optional[QuizMode] = None,
    ) -> int:
        """
        Load a set, play one quiz on it and show the results.

        Returns:
            Process exit code
        """
        async with FlashLearnClient(
            self.config_manager.get_api_base_url(),
            self.config_manager.get_api_timeout_ms(),
        ) as client:
            controller = QuizController(DeckLoader(client, self.storage), self.result_store, self.config_manager)
            controller.add_listener(self._on_session_event)

            opened = await controller.open_quiz(set_id, set_name)
        if not opened['success']:
            self.console.print(f"[red]❌ {opened['user_message']}[/red]")
            return 1

        try:
            session = controller.session
            self.console.print(Panel(
                f"{opened['card_count']} cards\n\n{self.config_manager.get_settings_summary()}",
                title=f"[bold cyan]{escape(session.loaded_set.name)}[/bold cyan]",
                border_style="cyan",
                box=box.HEAVY,
            ))

            if mode is None:
                mode = await self._choose_mode()
            started = controller.start_quiz(mode)
            if not started['success']:
                self.console.print(f"[red]{started['user_message']}[/red]")
                return 1
            if 'handoff' in started:
                self._show_review(session.deck)
                return 0

            if session.mode is QuizMode.PAIR:
                await self._play_pairs(session)
            else:
                await self._play_questions(session)

            if session.phase is SessionPhase.COMPLETED:
                self._show_results(session.build_results_payload())
                if not session.record_saved:
                    self.console.print(
                        f"[{STYLES['warning']}]Result was not saved. Sign in to keep quiz history.[/]"
                    )
            return 0
        finally:
            controller.close_quiz()

    async def _choose_mode(self) -> QuizMode:
        self.console.print("\n[bold]Choose a mode:[/bold]")
        self.console.print("  [1] Multiple choice")
        self.console.print("  [2] Type the answer")
        self.console.print("  [3] Match pairs")
        self.console.print("  [4] Review cards")
        while True:
            reply = (await self._ask("Mode")).strip()
            if reply in MODE_CHOICES:
                return MODE_CHOICES[reply]
            self.console.print("[dim]Enter 1, 2, 3 or 4[/dim]")

    def _on_session_event(self, name: str, data: Dict[str, Any]) -> None:
        if name == 'completed' and data.get('completedReason') == 'time-up':
            self.console.print(f"\n[{STYLES['warning']}]⏰ Time's up! Press Enter to see your results.[/]")

    async def _play_questions(self, session: QuizSession) -> None:
        total = len(session.deck)
        while session.phase is SessionPhase.ACTIVE:
            answered = len(session.answers)
            card = session.current_card
            self._show_question(session, card, total)

            reply = await self._ask("Your answer")
            if session.phase is not SessionPhase.ACTIVE:
                break
            if len(session.answers) != answered:
                # The question timer ran out while waiting for input
                self._show_feedback(session.answers[-1])
                continue

            if session.mode is QuizMode.MULTIPLE_CHOICE:
                reply = self._resolve_choice(reply, session.choices)
            record = session.submit_answer(reply)
            if record is not None:
                self._show_feedback(record)

    def _show_question(self, session: QuizSession, card: Card, total: int) -> None:
        header = f"Question {session.current_index + 1}/{total}"
        if session.time_remaining:
            header += f"  ⏱ {session.time_remaining}s"
        self.console.print(Panel(escape(card.question), title=header, border_style="cyan"))
        if session.mode is QuizMode.MULTIPLE_CHOICE:
            for number, choice in enumerate(session.choices, 1):
                self.console.print(f"  [{number}] {escape(choice)}")

    @staticmethod
    def _resolve_choice(reply: str, choices: List[str]) -> str:
        text = reply.strip()
        if text.isdigit() and 1 <= int(text) <= len(choices):
            return choices[int(text) - 1]
        return reply

    def _show_feedback(self, record: AnswerRecord) -> None:
        if record.is_correct:
            self.console.print(f"[{STYLES['correct']}]✓ Correct![/]")
        else:
            self.console.print(
                f"[{STYLES['incorrect']}]✗ {escape(record.user_answer)}[/] - answer: {escape(record.correct_answer)}"
            )

    async def _play_pairs(self, session: QuizSession) -> None:
        while session.phase is SessionPhase.ACTIVE:
            puzzle = session.puzzle
            self._show_pair_board(puzzle)
            reply = await self._ask("Match (question answer, e.g. 1 3)")
            if session.phase is not SessionPhase.ACTIVE:
                break

            selection = self._parse_pair(reply, puzzle)
            if selection is None:
                self.console.print("[dim]Enter a question number and an answer number[/dim]")
                continue

            question_id, answer_id = selection
            if puzzle.selected_question is None or puzzle.selected_question.id != question_id:
                session.select_pair_question(question_id)
            result = session.select_pair_answer(answer_id)
            if result is PairSelectionResult.MATCHED:
                self.console.print(f"[{STYLES['correct']}]✓ Match![/]")
            elif result is PairSelectionResult.MISMATCHED:
                self.console.print(f"[{STYLES['incorrect']}]✗ Not a match[/]")
                await asyncio.sleep(PAIR_ERROR_DISPLAY_SECONDS + 0.05)

    def _show_pair_board(self, puzzle: PairPuzzle) -> None:
        table = Table(box=box.SIMPLE, show_header=True)
        table.add_column("#", style="dim")
        table.add_column("Question")
        table.add_column("#", style="dim")
        table.add_column("Answer")
        rows = max(len(puzzle.remaining_questions), len(puzzle.remaining_answers))
        for i in range(rows):
            question = puzzle.remaining_questions[i].text if i < len(puzzle.remaining_questions) else ""
            answer = puzzle.remaining_answers[i].text if i < len(puzzle.remaining_answers) else ""
            table.add_row(str(i + 1), escape(question), str(i + 1), escape(answer))
        self.console.print(table)
        self.console.print(f"[dim]{len(puzzle.confirmed_pairs)}/{puzzle.total_pairs} matched[/dim]")

    @staticmethod
    def _parse_pair(reply: str, puzzle: PairPuzzle) -> Optional[Tuple[int, int]]:
        parts = reply.replace(",", " ").split()
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            return None
        q, a = int(parts[0]) - 1, int(parts[1]) - 1
        if not (0 <= q < len(puzzle.remaining_questions) and 0 <= a < len(puzzle.remaining_answers)):
            return None
        return puzzle.remaining_questions[q].id, puzzle.remaining_answers[a].id

    def _show_review(self, deck: Tuple[Card, ...]) -> None:
        table = Table(title="Review", box=box.ROUNDED)
        table.add_column("Question", style="cyan")
        table.add_column("Answer")
        for card in deck:
            table.add_row(escape(card.question), escape(card.answer))
        self.console.print(table)

    def _show_results(self, payload: Dict[str, Any]) -> None:
        lines = [
            f"[bold]{payload['score']}%[/bold]  {payload['scoreMessage']}",
            f"{payload['correctAnswers']}/{payload['totalQuestions']} correct",
            f"Total time: {payload['totalTime']}s",
        ]
        if payload['answers']:
            lines.append(f"Average response: {payload['averageResponseTime'] / 1000:.1f}s")
        if payload['previousBestScore']:
            lines.append(f"Previous best: {payload['previousBestScore']}%")
        self.console.print(Panel(
            "\n".join(lines),
            title=f"[bold cyan]Results: {escape(payload['setName'])}[/bold cyan]",
            border_style="green" if payload['score'] >= 60 else "red",
        ))

        if payload['answers']:
            table = Table(box=box.SIMPLE)
            table.add_column("#", style="dim")
            table.add_column("Question")
            table.add_column("Your answer")
            table.add_column("Correct answer")
            for answer in payload['answers']:
                style = STYLES['correct'] if answer['isCorrect'] else STYLES['incorrect']
                table.add_row(
                    str(answer['questionIndex'] + 1),
                    escape(answer['question']),
                    f"[{style}]{escape(answer['userAnswer'])}[/]",
                    escape(answer['correctAnswer']),
                )
            self.console.print(table)

    def show_history(self) -> None:
        groups = group_records_by_set(self.result_store.load_all())
        if not groups:
            self.console.print("[dim]No quizzes taken yet.[/dim]")
            return

        for group in groups:
            table = Table(title=escape(f"{group['setName']} ({group['subject']})"), box=box.ROUNDED)
            table.add_column("Attempt")
            table.add_column("Mode")
            table.add_column("Score")
            table.add_column("Completed")
            for quiz in group['quizzes']:
                total = quiz.get('totalQuestions') or 0
                correct = quiz.get('correctAnswers') or 0
                table.add_row(
                    f"#{quiz['attemptNumber']}",
                    str(quiz.get('mode', '')),
                    f"{correct}/{total}",
                    str(quiz.get('completedAt', '')),
                )
            self.console.print(table)
        self.console.print(f"[dim]Quizzes taken: {self.result_store.count()}[/dim]")


def _build_console(config_path: Path) -> QuizConsole:
    config = load_config(config_path)
    setup_logging_from_config(config)
    return QuizConsole(config)


CONFIG_OPTION = typer.Option(Path("config.json"), "--config", "-c", help="Path to config.json")


@app.command()
def quiz(
    set_id: str = typer.Argument(..., help="Identifier of the set to quiz on"),
    set_name: Optional[str] = typer.Option(None, "--name", help="Display name for the set"),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m", help="multiple-choice, type-answer, pair or review"
    ),
    timer_mode: Optional[str] = typer.Option(None, "--timer-mode", help="question or test"),
    question_timer: Optional[int] = typer.Option(None, "--question-timer", help="Seconds per question"),
    test_timer: Optional[int] = typer.Option(None, "--test-timer", help="Minutes for the whole test"),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Take a quiz on a flashcard set."""
    quiz_console = _build_console(config_path)

    overrides = {}
    if timer_mode is not None:
        overrides['timer_mode'] = timer_mode
    if question_timer is not None:
        overrides['question_timer'] = question_timer
    if test_timer is not None:
        overrides['test_timer'] = test_timer
    errors = quiz_console.config_manager.apply_config({'quiz': overrides})
    if errors:
        for error in errors:
            console.print(f"[red]❌ {error}[/red]")
        raise typer.Exit(1)

    try:
        selected_mode = QuizMode(mode) if mode else None
    except ValueError:
        console.print(f"[red]❌ Unknown mode: {mode}[/red]")
        raise typer.Exit(1)

    exit_code = asyncio.run(quiz_console.run_quiz(set_id, set_name, selected_mode))
    raise typer.Exit(exit_code)


@app.command()
def history(config_path: Path = CONFIG_OPTION) -> None:
    """Show quiz history grouped by set."""
    _build_console(config_path).show_history()


@app.command("clear-history")
def clear_history(config_path: Path = CONFIG_OPTION) -> None:
    """Delete all quiz history for the signed-in user."""
    quiz_console = _build_console(config_path)
    if not Confirm.ask("Clear all quiz history?", default=False):
        raise typer.Exit(0)
    if quiz_console.result_store.clear():
        console.print("[green]Quiz history cleared successfully[/green]")
    else:
        console.print("[red]Failed to clear history[/red]")
        raise typer.Exit(1)


@app.command()
def settings(config_path: Path = CONFIG_OPTION) -> None:
    """Show the effective quiz settings."""
    quiz_console = _build_console(config_path)
    console.print(quiz_console.config_manager.get_settings_summary())
    for message in quiz_console.config_manager.get_user_friendly_validation_errors():
        console.print(message)


@app.command("sign-in")
def sign_in_command(
    token: str = typer.Option(..., "--token", help="Session token issued by the backend"),
    user_id: str = typer.Option(..., "--user-id", help="Your user id"),
    username: Optional[str] = typer.Option(None, "--username"),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Store a session token so sets can be fetched."""
    quiz_console = _build_console(config_path)
    try:
        sign_in(quiz_console.storage, token, user_id, username)
    except (StorageError, ValueError) as e:
        console.print(f"[red]❌ Could not sign in: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Signed in as {username or user_id}[/green]")


@app.command("sign-out")
def sign_out_command(config_path: Path = CONFIG_OPTION) -> None:
    """Forget the stored session."""
    quiz_console = _build_console(config_path)
    try:
        sign_out(quiz_console.storage)
    except StorageError as e:
        console.print(f"[red]❌ Could not sign out: {e}[/red]")
        raise typer.Exit(1)
    console.print("Signed out")
