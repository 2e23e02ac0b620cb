"""
Test suite for TraversalEngine component
Following TDD approach with AAA pattern and descriptive naming
"""

from unittest.mock import Mock

from conftest import EMPTY_PAGE, questions_page
from question_harvester.dedup_store import DedupStore
from question_harvester.state_manager import Session
from question_harvester.subject_resolver import SubjectResolver
from question_harvester.traversal import StepOutcome, TraversalEngine


def build_engine(client, years, subjects=('mathematics',), quota=5, **kwargs):
    session = Session(exam='JAMB', years=list(years), subjects=list(subjects))
    store = DedupStore()
    engine = TraversalEngine(
        session=session,
        resolver=SubjectResolver(client, variant_delay_seconds=0),
        store=store,
        quota=quota,
        polite_delay_seconds=0,
        **kwargs
    )
    return engine, session, store


class TestTraversalEngine:
    """Test suite for the per-subject year/page state machine"""

    def test_step_with_items_inserts_and_moves_to_next_page(self, scripted_client):
        # Arrange
        client = scripted_client(lambda mode, body: questions_page('Q1', 'Q2'))
        engine, session, store = build_engine(client, ['2023'])

        # Act
        outcome = engine.step('mathematics')

        # Assert
        assert outcome == StepOutcome(inserted=2, fetched=True)
        pointer = session.pointer('mathematics')
        assert (pointer.year_index, pointer.page, pointer.collected) == (0, 2, 2)
        assert len(store) == 2
        assert store.records()[0].fetched_page == 1

    def test_step_with_empty_page_moves_to_first_page_of_next_year(self, scripted_client):
        # Arrange
        client = scripted_client(lambda mode, body: EMPTY_PAGE)
        engine, session, _ = build_engine(client, ['2023', '2022'])
        session.pointer('mathematics').page = 6

        # Act
        outcome = engine.step('mathematics')

        # Assert
        assert outcome.empty is True
        pointer = session.pointer('mathematics')
        assert (pointer.year_index, pointer.page) == (1, 1)
        assert pointer.exhausted is False

    def test_drive_with_all_years_empty_exhausts_subject(self, scripted_client):
        """
        Test that a subject with no questions in any year becomes exhausted
        """
        # Arrange
        client = scripted_client(lambda mode, body: EMPTY_PAGE)
        engine, session, _ = build_engine(client, ['2023', '2022'])

        # Act
        inserted = engine.drive('mathematics')

        # Assert
        assert inserted == 0
        assert session.pointer('mathematics').exhausted is True
        assert [body['exam_year_id'] for body in client.question_calls()] == ['2023', '2022']

    def test_step_on_exhausted_subject_makes_no_request(self, scripted_client):
        # Arrange
        client = scripted_client(lambda mode, body: questions_page('Q1'))
        engine, session, _ = build_engine(client, ['2023'])
        session.pointer('mathematics').mark_exhausted()

        # Act
        outcome = engine.step('mathematics')

        # Assert
        assert outcome == StepOutcome()
        assert client.calls == []

    def test_step_stops_inserting_at_quota_mid_page(self, scripted_client):
        """
        Test that a page larger than the remaining quota is only partly consumed
        """
        # Arrange
        client = scripted_client(lambda mode, body: questions_page('Q1', 'Q2', 'Q3'))
        engine, session, store = build_engine(client, ['2023'], quota=2)

        # Act
        inserted = engine.drive('mathematics')

        # Assert
        assert inserted == 2
        assert len(store) == 2
        assert session.pointer('mathematics').collected == 2
        assert session.pointer('mathematics').exhausted is False
        assert len(client.question_calls()) == 1

    def test_drive_with_identical_pages_moves_on_after_stale_limit(self, scripted_client):
        """
        Test that a catalog ignoring the page parameter cannot loop forever once a limit is set
        """
        # Arrange
        client = scripted_client(lambda mode, body: questions_page('Q1'))
        engine, session, _ = build_engine(client, ['2023', '2022'], stale_page_limit=3)

        # Act
        inserted = engine.drive('mathematics')

        # Assert
        assert inserted == 1
        assert session.pointer('mathematics').exhausted is True
        pages = [(body['exam_year_id'], body['page']) for body in client.question_calls()]
        assert pages == [
            ('2023', 1), ('2023', 2), ('2023', 3), ('2023', 4),
            ('2022', 1), ('2022', 2), ('2022', 3), ('2022', 4)
        ]

    def test_drive_keeps_paging_past_repeated_pages_by_default(self, scripted_client):
        """
        Test that overlapping pages never cause later new questions to be skipped
        """
        # Arrange
        def responder(mode, body):
            if body['exam_year_id'] != '2023':
                return EMPTY_PAGE
            if body['page'] <= 4:
                return questions_page('Q1', 'Q2')
            if body['page'] == 5:
                return questions_page('Q3', 'Q4', start_id=3)
            return EMPTY_PAGE
        client = scripted_client(responder)
        engine, session, store = build_engine(client, ['2023', '2022'], quota=10)

        # Act
        engine.drive('mathematics')

        # Assert
        assert [record.question for record in store.records()] == ['Q1', 'Q2', 'Q3', 'Q4']
        assert [body['page'] for body in client.question_calls() if body['exam_year_id'] == '2023'] == [
            1, 2, 3, 4, 5, 6
        ]
        assert session.pointer('mathematics').exhausted is True

    def test_drive_with_stale_limit_ignores_pages_that_differ(self, scripted_client):
        # Arrange
        pages = {1: ('Q1', 'Q2'), 2: ('Q1',), 3: ('Q2',), 4: ('Q1', 'Q2'), 5: ('Q3',)}

        def responder(mode, body):
            if body['exam_year_id'] == '2023' and body['page'] in pages:
                return questions_page(*pages[body['page']])
            return EMPTY_PAGE
        client = scripted_client(responder)
        engine, _, store = build_engine(client, ['2023'], quota=10, stale_page_limit=2)

        # Act
        engine.drive('mathematics')

        # Assert
        assert [record.question for record in store.records()] == ['Q1', 'Q2', 'Q3']

    def test_drive_across_years_collects_until_quota(self, scripted_client):
        # Arrange
        def responder(mode, body):
            if body['exam_year_id'] == '2023' and body['page'] == 1:
                return questions_page('Q1', 'Q2')
            if body['exam_year_id'] == '2022' and body['page'] == 1:
                return questions_page('Q3', 'Q4', start_id=3)
            return EMPTY_PAGE
        client = scripted_client(responder)
        engine, session, store = build_engine(client, ['2023', '2022'], quota=3)

        # Act
        engine.drive('mathematics')

        # Assert
        assert [record.year for record in store.records()] == ['2023', '2023', '2022']
        assert session.pointer('mathematics').collected == 3

    def test_every_fetch_notifies_page_callback(self, scripted_client):
        # Arrange
        client = scripted_client(lambda mode, body: EMPTY_PAGE)
        on_page_fetched = Mock()
        engine, _, _ = build_engine(client, ['2023', '2022'], on_page_fetched=on_page_fetched)

        # Act
        engine.drive('mathematics')

        # Assert
        assert on_page_fetched.call_count == 2
