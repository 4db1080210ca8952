"""Unit tests for linkhop core models, eligibility rules and the challenge selector."""

import unittest
from datetime import timedelta

from core.models import (
    Challenge, ChallengeAttempt, ChallengeState, EligibilityCriteria,
    NavigationContext, NavigationEvent, NAVIGATE_TO_CHALLENGE
)
from core.errors import NavigationErrorKind, FEEDBACK, STRATEGIES, RETRYABLE, SUGGESTED_WAIT_MS
from core.eligibility import filter_available_challenges
from core.selector import ChallengeSelector
from core.utils import generate_context_key, parse_timestamp, utcnow
from core.config import DEFAULT_ATTEMPTS_REMAINING, NAVIGATION_HISTORY_LIMIT


# ============================================================================
# Helpers
# ============================================================================

def make_pool(*ids, creator_id: str = 'someone') -> list[Challenge]:
    return [Challenge(i, creator_id=creator_id, title=f'Challenge {i}') for i in ids]


def make_selector(*ids, states: list[ChallengeState] = None, **kwargs) -> ChallengeSelector:
    selector = ChallengeSelector()
    selector.initialize(make_pool(*ids), states or [], **kwargs)
    return selector


# ============================================================================
# Test Cases
# ============================================================================

class TestChallenge(unittest.TestCase):
    """Tests for Challenge model."""

    def test_from_dict_keeps_extra_fields_as_payload(self):
        challenge = Challenge.from_dict({
            'id': 'c1', 'creator_id': 'u1', 'title': 'Cats',
            'images': ['a.png', 'b.png'], 'correct_answer': 'cat'
        })
        self.assertEqual(challenge.id, 'c1')
        self.assertEqual(challenge.creator_id, 'u1')
        self.assertEqual(challenge.payload, {'images': ['a.png', 'b.png'], 'correct_answer': 'cat'})
        self.assertEqual(challenge.to_dict()['correct_answer'], 'cat')

    def test_from_dict_coerces_numeric_id(self):
        challenge = Challenge.from_dict({'id': 42})
        self.assertEqual(challenge.id, '42')
        self.assertEqual(challenge.creator_id, '')


class TestChallengeState(unittest.TestCase):
    """Tests for ChallengeState model."""

    def test_defaults(self):
        state = ChallengeState('c1')
        self.assertEqual(state.status, 'active')
        self.assertEqual(state.attempts_remaining, DEFAULT_ATTEMPTS_REMAINING)
        self.assertFalse(state.player_progress.is_completed)
        self.assertEqual(state.player_progress.hints_used, 0)

    def test_rejects_unknown_status(self):
        with self.assertRaises(ValueError):
            ChallengeState('c1', status='paused')

    def test_rejects_negative_attempts(self):
        with self.assertRaises(ValueError):
            ChallengeState('c1', attempts_remaining=-1)

    def test_merged_rejects_malformed_update(self):
        state = ChallengeState('c1')
        for updates in (['x'], {'player_progress': 'done'}, {'attempts_remaining': 'many'}):
            with self.assertRaises(ValueError):
                state.merged(updates)

    def test_merged_applies_partial_update(self):
        state = ChallengeState('c1', last_accessed=utcnow() - timedelta(hours=1))
        merged = state.merged({'status': 'completed', 'player_progress': {'score': 80}})
        self.assertEqual(merged.status, 'completed')
        self.assertEqual(merged.attempts_remaining, DEFAULT_ATTEMPTS_REMAINING)
        self.assertEqual(merged.player_progress.score, 80)
        self.assertEqual(merged.player_progress.hints_used, 0)
        self.assertGreater(merged.last_accessed, state.last_accessed)
        # Original untouched
        self.assertEqual(state.status, 'active')

    def test_from_dict_parses_timestamp(self):
        state = ChallengeState.from_dict({
            'id': 'c1', 'status': 'given_up', 'attempts_remaining': 3,
            'last_accessed': '2024-05-01T10:00:00Z',
            'player_progress': {'attempts_made': 7}
        })
        self.assertEqual(state.status, 'given_up')
        self.assertEqual(state.last_accessed, parse_timestamp('2024-05-01T10:00:00+00:00'))
        self.assertEqual(state.player_progress.attempts_made, 7)


class TestEligibilityCriteria(unittest.TestCase):
    """Tests for EligibilityCriteria defaults and overrides."""

    def test_defaults(self):
        criteria = EligibilityCriteria()
        self.assertEqual(criteria.exclude_statuses, ('given_up', 'game_over', 'exhausted_attempts'))
        self.assertTrue(criteria.respect_permissions)
        self.assertFalse(criteria.include_completed)
        self.assertEqual(criteria.min_attempts_remaining, 1)

    def test_with_overrides_ignores_unknown_keys(self):
        criteria = EligibilityCriteria().with_overrides({'include_completed': True, 'bogus': 1})
        self.assertTrue(criteria.include_completed)
        self.assertFalse(hasattr(criteria, 'bogus'))
        self.assertEqual(criteria.min_attempts_remaining, 1)


class TestNavigationContext(unittest.TestCase):
    """Tests for NavigationContext transitions."""

    def test_advanced_to_updates_cursor_and_metadata(self):
        context = NavigationContext(current_challenge_id='A')
        advanced = context.advanced_to('B')
        self.assertEqual(advanced.current_challenge_id, 'B')
        self.assertEqual(advanced.previous_challenge_id, 'A')
        self.assertEqual(advanced.navigation_history, ['B'])
        self.assertEqual(advanced.session_metadata.challenges_navigated, 1)
        self.assertTrue(advanced.session_metadata.is_in_navigation_flow)
        # Original is left untouched
        self.assertEqual(context.current_challenge_id, 'A')
        self.assertEqual(context.navigation_history, [])
        self.assertFalse(context.session_metadata.is_in_navigation_flow)

    def test_history_is_capped(self):
        context = NavigationContext()
        for i in range(NAVIGATION_HISTORY_LIMIT + 5):
            context = context.advanced_to(f'c{i}')
        self.assertEqual(len(context.navigation_history), NAVIGATION_HISTORY_LIMIT)
        self.assertEqual(context.navigation_history[-1], f'c{NAVIGATION_HISTORY_LIMIT + 4}')
        self.assertEqual(context.navigation_history[0], 'c5')

    def test_clone_is_deep(self):
        context = NavigationContext('A', navigation_history=['A'], preserved_form_data={'title': 'x'})
        clone = context.clone()
        clone.navigation_history.append('B')
        clone.preserved_form_data['title'] = 'y'
        self.assertEqual(context.navigation_history, ['A'])
        self.assertEqual(context.preserved_form_data, {'title': 'x'})

    def test_merged_applies_known_fields_only(self):
        context = NavigationContext('A')
        merged = context.merged({
            'preserved_form_data': {'answer': 'dog'},
            'session_metadata': {'is_in_navigation_flow': True},
            'unknown': 'ignored'
        })
        self.assertEqual(merged.current_challenge_id, 'A')
        self.assertEqual(merged.preserved_form_data, {'answer': 'dog'})
        self.assertTrue(merged.session_metadata.is_in_navigation_flow)
        self.assertEqual(merged.session_metadata.session_start_time,
                         context.session_metadata.session_start_time)

    def test_merged_rejects_malformed_fields(self):
        context = NavigationContext('A')
        for updates in ({'navigation_history': None},
                        {'available_challenges': ['A', 2]},
                        {'previous_challenge_id': 3},
                        {'session_metadata': {'session_start_time': 'nope'}},
                        {'session_metadata': {'is_in_navigation_flow': 'yes'}},
                        'not a dict'):
            with self.assertRaises(ValueError):
                context.merged(updates)

    def test_to_dict_and_from_dict(self):
        context = NavigationContext('B', 'A', ['A', 'B'], ['A', 'B'], {'k': 1})
        restored = NavigationContext.from_dict(context.to_dict())
        self.assertEqual(restored.current_challenge_id, 'B')
        self.assertEqual(restored.previous_challenge_id, 'A')
        self.assertEqual(restored.navigation_history, ['A', 'B'])
        self.assertEqual(restored.preserved_form_data, {'k': 1})
        self.assertEqual(restored.session_metadata.session_start_time,
                         context.session_metadata.session_start_time)


class TestNavigationEvent(unittest.TestCase):
    """Tests for NavigationEvent parsing."""

    def test_from_dict(self):
        event = NavigationEvent.from_dict({'type': 'NAVIGATE_TO_CHALLENGE', 'challenge_id': 'c9'})
        self.assertEqual(event.type, NAVIGATE_TO_CHALLENGE)
        self.assertEqual(event.challenge_id, 'c9')
        self.assertIsNone(event.context_id)

    def test_missing_type_is_empty(self):
        self.assertEqual(NavigationEvent.from_dict({}).type, '')


class TestErrorTables(unittest.TestCase):
    """The feedback and strategy tables cover every error kind."""

    def test_every_kind_has_feedback_strategy_and_wait_time(self):
        for kind in NavigationErrorKind:
            self.assertIn(kind, FEEDBACK)
            self.assertIn(kind, STRATEGIES)
            self.assertIn(kind, SUGGESTED_WAIT_MS)

    def test_auto_recovering_kinds_are_the_retryable_ones(self):
        auto = {kind for kind, strategy in STRATEGIES.items() if strategy.auto_recover}
        self.assertEqual(auto, set(RETRYABLE))
        self.assertEqual(len(RETRYABLE), 7)

    def test_kind_compares_to_plain_string(self):
        self.assertEqual(NavigationErrorKind('CONTEXT_LOSS'), NavigationErrorKind.CONTEXT_LOSS)
        self.assertEqual(NavigationErrorKind.CONTEXT_LOSS, 'CONTEXT_LOSS')


class TestFilterAvailableChallenges(unittest.TestCase):
    """Tests for the viewer-based eligibility rule."""

    def test_excludes_viewer_created(self):
        challenges = [
            Challenge('A', creator_id='viewer'),
            Challenge('B', creator_id='other'),
        ]
        result = filter_available_challenges(challenges, [], 'viewer')
        self.assertEqual([c.id for c in result], ['B'])

    def test_excludes_solved_and_lost(self):
        challenges = make_pool('A', 'B', 'C', 'D')
        attempts = [
            ChallengeAttempt('A', 'viewer', is_solved=True),
            ChallengeAttempt('B', 'viewer', game_over=True),
            ChallengeAttempt('C', 'viewer', attempts_made=2),
        ]
        result = filter_available_challenges(challenges, attempts, 'viewer')
        self.assertEqual([c.id for c in result], ['C', 'D'])


class TestChallengeSelectorFilter(unittest.TestCase):
    """Tests for ChallengeSelector.filter_eligible."""

    def test_no_state_means_eligible_in_pool_order(self):
        selector = make_selector('C', 'A', 'B')
        self.assertEqual(selector.filter_eligible(), ['C', 'A', 'B'])

    def test_completed_excluded_by_default(self):
        selector = make_selector('A', 'B', states=[ChallengeState('A', status='completed')])
        self.assertEqual(selector.filter_eligible(), ['B'])

    def test_completed_included_when_requested(self):
        selector = make_selector('A', 'B', states=[ChallengeState('A', status='completed')])
        self.assertEqual(selector.filter_eligible({'include_completed': True}), ['A', 'B'])

    def test_given_up_and_game_over_excluded(self):
        selector = make_selector('A', 'B', 'C', states=[
            ChallengeState('A', status='given_up'),
            ChallengeState('C', status='game_over'),
        ])
        self.assertEqual(selector.filter_eligible(), ['B'])

    def test_attempts_below_minimum_excluded(self):
        selector = make_selector('A', 'B', states=[ChallengeState('A', attempts_remaining=2)])
        self.assertEqual(selector.filter_eligible(), ['A', 'B'])
        self.assertEqual(selector.filter_eligible({'min_attempts_remaining': 3}), ['B'])

    def test_exhausted_attempts_excluded(self):
        selector = make_selector('A', 'B', states=[ChallengeState('A', attempts_remaining=0)])
        self.assertEqual(selector.filter_eligible(), ['B'])
        relaxed = EligibilityCriteria(exclude_statuses=(), min_attempts_remaining=0)
        self.assertEqual(selector.filter_eligible(relaxed), ['A', 'B'])

    def test_viewer_own_challenges_excluded(self):
        selector = ChallengeSelector()
        selector.initialize(
            [Challenge('A', creator_id='me'), Challenge('B', creator_id='x'), Challenge('C', creator_id='y')],
            viewer_id='me'
        )
        self.assertEqual(selector.filter_eligible(), ['B', 'C'])

    def test_viewer_hint_combines_with_states(self):
        selector = ChallengeSelector()
        selector.initialize(
            make_pool('A', 'B', 'C'),
            [ChallengeState('C', status='given_up')],
            [ChallengeAttempt('A', 'me', is_solved=True)],
            viewer_id='me'
        )
        self.assertEqual(selector.filter_eligible(), ['B'])

    def test_custom_hint_source(self):
        calls = []

        def only_first(challenges, attempts, viewer_id):
            calls.append(viewer_id)
            return challenges[:1]

        selector = ChallengeSelector(hint_source=only_first)
        selector.initialize(make_pool('A', 'B'), viewer_id='me')
        self.assertEqual(selector.filter_eligible(), ['A'])
        self.assertEqual(calls, ['me'])

    def test_access_check_respected(self):
        selector = make_selector('A', 'B', 'C', access_check=lambda c: c.id != 'B')
        self.assertEqual(selector.filter_eligible(), ['A', 'C'])
        self.assertEqual(selector.filter_eligible({'respect_permissions': False}), ['A', 'B', 'C'])

    def test_duplicate_ids_ignored(self):
        selector = ChallengeSelector()
        selector.initialize([Challenge('A'), Challenge('B'), Challenge('A', title='dupe')])
        self.assertEqual(selector.filter_eligible(), ['A', 'B'])
        self.assertEqual(selector.challenges[0].title, '')

    def test_initialize_replaces_previous_pool(self):
        selector = make_selector('A', 'B', states=[ChallengeState('A', status='completed')])
        selector.initialize(make_pool('X', 'A'))
        self.assertEqual(selector.filter_eligible(), ['X', 'A'])
        self.assertFalse(selector.is_known('B'))
        self.assertIsNone(selector.get_state('A'))


class TestChallengeSelectorNavigation(unittest.TestCase):
    """Tests for get_next / get_previous."""

    def test_next_and_previous_examples(self):
        selector = make_selector('A', 'B', 'C')
        self.assertEqual(selector.get_next('B').challenge_id, 'C')
        self.assertEqual(selector.get_next('C').challenge_id, 'A')
        self.assertEqual(selector.get_previous('A').challenge_id, 'C')
        self.assertEqual(selector.get_previous('C').challenge_id, 'B')

    def test_cyclic_closure(self):
        selector = make_selector('A', 'B', 'C', 'D', 'E')
        for start in ['A', 'C', 'E']:
            current = start
            for _ in range(5):
                current = selector.get_next(current).challenge_id
            self.assertEqual(current, start)
            for _ in range(5):
                current = selector.get_previous(current).challenge_id
            self.assertEqual(current, start)

    def test_single_challenge_refresh(self):
        selector = make_selector('A')
        for current in ['A', 'Z', '']:
            next_outcome = selector.get_next(current)
            previous_outcome = selector.get_previous(current)
            self.assertTrue(next_outcome.success)
            self.assertEqual(next_outcome.challenge_id, 'A')
            self.assertTrue(previous_outcome.success)
            self.assertEqual(previous_outcome.challenge_id, 'A')

    def test_empty_pool_fails(self):
        selector = make_selector()
        for outcome in (selector.get_next('A'), selector.get_previous('A')):
            self.assertFalse(outcome.success)
            self.assertEqual(outcome.error, NavigationErrorKind.NO_AVAILABLE_CHALLENGES)
            self.assertIn('Return to menu', outcome.fallback_options)

    def test_all_ineligible_fails(self):
        selector = make_selector('A', states=[ChallengeState('A', status='game_over')])
        self.assertEqual(selector.get_next('A').error, NavigationErrorKind.NO_AVAILABLE_CHALLENGES)

    def test_unknown_current_jumps_to_ends(self):
        selector = make_selector('A', 'B', 'C')
        self.assertEqual(selector.get_next('missing').challenge_id, 'A')
        self.assertEqual(selector.get_previous('missing').challenge_id, 'C')

    def test_current_that_became_ineligible(self):
        selector = make_selector('A', 'B', 'C')
        selector.update_state('B', {'status': 'completed'})
        self.assertEqual(selector.get_next('B').challenge_id, 'A')
        self.assertEqual(selector.get_previous('B').challenge_id, 'C')

    def test_filter_exception_reported_as_loop_failure(self):
        def broken(challenges, attempts, viewer_id):
            raise RuntimeError('hint source down')

        selector = ChallengeSelector(hint_source=broken)
        selector.initialize(make_pool('A', 'B'), viewer_id='me')
        for outcome in (selector.get_next('A'), selector.get_previous('A')):
            self.assertFalse(outcome.success)
            self.assertEqual(outcome.error, NavigationErrorKind.NAVIGATION_LOOP_FAILURE)
            self.assertEqual(outcome.fallback_options, ['Try again', 'Return to menu', 'Refresh page'])


class TestChallengeSelectorAccess(unittest.TestCase):
    """Tests for validate_access and state bookkeeping."""

    def test_unknown_challenge_not_found(self):
        outcome = make_selector('A').validate_access('Z')
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, NavigationErrorKind.CHALLENGE_NOT_FOUND)
        self.assertIn('Z', outcome.error_message)

    def test_ineligible_challenge_denied(self):
        selector = make_selector('A', 'B', states=[ChallengeState('A', status='given_up')])
        outcome = selector.validate_access('A')
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, NavigationErrorKind.PERMISSION_DENIED)

    def test_eligible_challenge_allowed(self):
        outcome = make_selector('A', 'B').validate_access('B')
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.challenge_id, 'B')

    def test_update_state_creates_default(self):
        selector = make_selector('A')
        state = selector.update_state('A', {'attempts_remaining': 4})
        self.assertEqual(state.status, 'active')
        self.assertEqual(state.attempts_remaining, 4)
        self.assertIs(selector.get_state('A'), state)

    def test_update_state_merges_existing(self):
        selector = make_selector('A', states=[ChallengeState('A', attempts_remaining=5)])
        selector.update_state('A', {'player_progress': {'hints_used': 2}})
        selector.update_state('A', {'status': 'completed'})
        state = selector.get_state('A')
        self.assertEqual(state.status, 'completed')
        self.assertEqual(state.attempts_remaining, 5)
        self.assertEqual(state.player_progress.hints_used, 2)

    def test_counts_and_reset(self):
        selector = make_selector('A', 'B', 'C')
        selector.update_state('A', {'status': 'given_up'})
        self.assertEqual(selector.available_count(), 2)
        self.assertTrue(selector.has_available())
        self.assertEqual(len(selector.all_states()), 1)
        selector.reset_states()
        self.assertEqual(selector.all_states(), [])
        self.assertEqual(selector.available_count(), 3)


class TestUtils(unittest.TestCase):
    """Tests for utility helpers."""

    def test_context_keys_are_unique(self):
        keys = {generate_context_key() for _ in range(50)}
        self.assertEqual(len(keys), 50)
        self.assertTrue(all(k.startswith('nav_') for k in keys))

    def test_parse_timestamp_empty(self):
        self.assertIsNone(parse_timestamp(None))
        self.assertIsNone(parse_timestamp(''))

    def test_parse_naive_timestamp_assumes_utc(self):
        parsed = parse_timestamp('2024-01-01T00:00:00')
        self.assertIsNotNone(parsed.tzinfo)


if __name__ == '__main__':
    unittest.main()
