"""Console UI for linkhop navigation."""

from cli.api_client import LinkhopAPIClient

HELP = ('Commands: "n" next, "p" previous, "g <id>" go to, "s" status, "e" error stats, '
        '"save" preserve context, "load <key>" restore context, "reset", "exit"')


class ConsoleUI:
    """Console user interface for stepping through a challenge pool."""

    def __init__(self, client: LinkhopAPIClient, challenges: list[dict]):
        self.client = client
        self.challenges = challenges
        self.titles = {str(c['id']): c.get('title', '') for c in challenges}

    def describe(self, challenge_id: str | None) -> str:
        if not challenge_id:
            return '(none)'
        title = self.titles.get(challenge_id)
        return f'{challenge_id} - {title}' if title else challenge_id

    def print_outcome(self, outcome: dict):
        """Print a navigation outcome."""
        if outcome['success']:
            suffix = ' (auto-recovered)' if outcome.get('auto_recovered') else ''
            print(f'\n>>> {self.describe(outcome["challenge_id"])}{suffix}')
            return

        context = outcome.get('error_context') or {}
        print('-' * 40)
        print(f'{context.get("title", "Navigation Error")} [{outcome["error"]}]')
        print(outcome['error_message'])
        if outcome['fallback_options']:
            print('You can:')
            for option in outcome['fallback_options']:
                print(f'  - {option}')
        if context.get('can_retry'):
            print(f'Retry in {context["suggested_wait_time"]}ms (attempt {context["retry_count"]})')
        print('-' * 40)

    def print_status(self):
        """Print the navigation context and availability."""
        context = self.client.get_context()
        availability = self.client.get_availability()
        metadata = context['session_metadata']
        print('\n' + '=' * 50)
        print('NAVIGATION STATUS')
        print('=' * 50)
        print(f'Current: {self.describe(context["current_challenge_id"])}')
        print(f'Previous: {self.describe(context["previous_challenge_id"])}')
        print(f'Available: {availability["available_count"]} '
              f'({", ".join(availability["available_challenges"]) or "none"})')
        print(f'History: {" -> ".join(context["navigation_history"]) or "empty"}')
        print(f'Challenges navigated: {metadata["challenges_navigated"]}')
        print('=' * 50 + '\n')

    def print_error_stats(self):
        stats = self.client.get_error_stats()
        print(f'\nErrors: {stats["total_errors"]} total, {stats["recent_errors"]} in the last hour')
        for kind, count in stats['errors_by_type'].items():
            print(f'  {kind}: {count}')
        if stats['most_common_error']:
            print(f'Most common: {stats["most_common_error"]}')

    def run(self):
        """Run the main application loop."""
        # Check server connection
        try:
            health = self.client.health_check()
            print(f"Connected to linkhop server ({health['service']})")
        except Exception:
            print(f"Error: Cannot connect to server at {self.client.base_url}")
            print("Make sure the server is running: python run_server.py")
            return

        session = self.client.start_session(self.challenges)
        print(f'Loaded {len(self.challenges)} challenges, '
              f'{len(session["available_challenges"])} available')
        print(f'\n>>> {self.describe(session["current_challenge_id"])}')
        print(HELP)

        while True:
            user_input = input('==> ').strip()
            command, _, argument = user_input.partition(' ')
            command = command.lower()
            argument = argument.strip()

            try:
                if command == 'exit':
                    print('Goodbye!')
                    return
                elif command == 'n':
                    self.print_outcome(self.client.next())
                elif command == 'p':
                    self.print_outcome(self.client.previous())
                elif command == 'g' and argument:
                    self.print_outcome(self.client.go_to(argument))
                elif command == 's':
                    self.print_status()
                elif command == 'e':
                    self.print_error_stats()
                elif command == 'save':
                    result = self.client.preserve_context()
                    print(f'Context saved as {result["challenge_id"]}')
                elif command == 'load' and argument:
                    self.print_outcome(self.client.restore_context(argument))
                elif command == 'reset':
                    self.client.reset()
                    print('Navigation state reset.')
                else:
                    print(HELP)
            except Exception as e:
                print(f"Error talking to server: {e}")
