import pytest

from categories import load_keyword_dictionary
from categorizer import (
    Categorizer,
    CategorizationResult,
    ScoredCategory,
    TransactionKind,
    UserCategory,
    ValidationError,
    count_matches,
    parse_kind,
    select_alternatives,
)


def expense(*names):
    return [UserCategory(id=i, name=n, kind=TransactionKind.EXPENSE) for i, n in enumerate(names, 1)]


def income(*names):
    return [UserCategory(id=i, name=n, kind=TransactionKind.INCOME) for i, n in enumerate(names, 1)]


@pytest.fixture
def engine():
    return Categorizer(load_keyword_dictionary())


def test_coffee_run_is_food(engine):
    result = engine.categorize('Starbucks coffee run', 'EXPENSE', expense('Food & Dining', 'Transportation'))
    assert result.category == 'Food & Dining'
    assert result.confidence == pytest.approx(0.6)
    assert result.alternatives == ['Transportation']


def test_no_match_falls_back_to_first_candidate(engine):
    result = engine.categorize('xyz123', 'EXPENSE', expense('Shopping', 'Bills'))
    assert result == CategorizationResult('Shopping', 0.3, ['Bills'])


def test_no_match_prefers_user_other_category(engine):
    result = engine.categorize('xyz123', 'EXPENSE', expense('Groceries', 'Other'))
    assert result.category == 'Other'
    assert result.confidence == pytest.approx(0.3)
    assert result.alternatives == ['Groceries']


@pytest.mark.parametrize('description', ['', '   ', None])
def test_blank_description_rejected(engine, description):
    with pytest.raises(ValidationError):
        engine.categorize(description, 'EXPENSE', expense('Shopping'))


def test_empty_candidates_rejected(engine):
    with pytest.raises(ValidationError):
        engine.categorize('Starbucks', 'EXPENSE', [])


def test_kind_mismatched_candidates_rejected(engine):
    with pytest.raises(ValidationError):
        engine.categorize('Starbucks', 'EXPENSE', income('Salary'))


def test_substring_matching_is_kept(engine):
    # 'gas' sits inside 'vegas' and is listed under both Transportation and Bills
    ranked = engine.score('Trip to Las Vegas', 'EXPENSE')
    assert ranked == [ScoredCategory('Transportation', 0.45), ScoredCategory('Bills', 0.45)]


def test_ties_keep_dictionary_order(engine):
    result = engine.categorize('Trip to Las Vegas', 'EXPENSE', expense('Bills', 'Transportation'))
    assert result.category == 'Transportation'
    assert result.alternatives == ['Bills']


def test_lower_ranked_label_used_when_best_is_not_a_user_category(engine):
    result = engine.categorize('coffee and lunch then uber', 'EXPENSE', expense('Shopping', 'Transportation'))
    assert result.category == 'Transportation'
    assert result.confidence == pytest.approx(0.45)


def test_no_overlap_with_user_categories(engine):
    result = engine.categorize('netflix subscription', 'EXPENSE', expense('Shopping', 'Bills'))
    assert result.category == 'Shopping'
    assert result.confidence == pytest.approx(0.3)
    assert result.alternatives == ['Bills']


def test_names_match_case_sensitively(engine):
    result = engine.categorize('Starbucks', 'EXPENSE', expense('food & dining', 'Shopping'))
    assert result.category == 'food & dining'
    assert result.confidence == pytest.approx(0.3)


def test_confidence_is_capped(engine):
    result = engine.categorize('food lunch dinner breakfast coffee restaurant', 'EXPENSE', expense('Food & Dining'))
    assert result.confidence == pytest.approx(0.95)


def test_repeated_keyword_counts_once(engine):
    result = engine.categorize('coffee coffee coffee', 'EXPENSE', expense('Food & Dining'))
    assert result.confidence == pytest.approx(0.45)


def test_income_keywords(engine):
    result = engine.categorize('Monthly salary deposit', 'income', income('Freelance', 'Salary'))
    assert result.category == 'Salary'
    assert result.confidence == pytest.approx(0.45)
    assert result.alternatives == ['Freelance']


def test_alternatives_are_limited_and_exclude_choice(engine):
    cats = expense('Shopping', 'Food & Dining', 'Bills', 'Transportation', 'Healthcare')
    result = engine.categorize('pizza', 'EXPENSE', cats)
    assert result.category == 'Food & Dining'
    assert result.alternatives == ['Shopping', 'Bills', 'Transportation']


def test_same_input_same_result(engine):
    cats = expense('Food & Dining', 'Transportation', 'Bills')
    first = engine.categorize('Uber to the gas station', 'EXPENSE', cats)
    second = engine.categorize('Uber to the gas station', 'EXPENSE', cats)
    assert first == second


def test_confidence_within_bounds(engine):
    cats = expense('Food & Dining', 'Transportation', 'Shopping', 'Bills', 'Entertainment', 'Healthcare')
    for text in ['uber', 'doctor appointment at the clinic', 'rent payment bill', 'zzz', 'movie and popcorn']:
        result = engine.categorize(text, 'EXPENSE', cats)
        assert 0.3 <= result.confidence <= 0.95
        assert result.category not in result.alternatives
        assert len(result.alternatives) <= 3


def test_thresholds_are_configurable():
    engine = Categorizer(load_keyword_dictionary(), base_confidence=0.2, confidence_step=0.3,
                         max_confidence=0.7, max_alternatives=1)
    assert engine.confidence_for(1) == pytest.approx(0.5)
    assert engine.confidence_for(5) == pytest.approx(0.7)
    result = engine.categorize('xyz', 'EXPENSE', expense('Shopping', 'Bills', 'Healthcare'))
    assert result == CategorizationResult('Shopping', 0.2, ['Bills'])


def test_bad_thresholds_rejected():
    with pytest.raises(ValueError):
        Categorizer(load_keyword_dictionary(), base_confidence=0.9, max_confidence=0.5)


def test_count_matches():
    assert count_matches('Uber EATS uber', ['uber', 'eats', 'lyft']) == 2
    assert count_matches('nothing here', ['uber']) == 0


def test_select_alternatives():
    cats = expense('A', 'B', 'A', 'C', 'D')
    assert select_alternatives(cats, 'B') == ['A', 'C', 'D']
    assert select_alternatives(cats, 'Z', limit=2) == ['A', 'B']
    assert select_alternatives(expense('Only'), 'Only') == []


def test_parse_kind():
    assert parse_kind(' expense ') is TransactionKind.EXPENSE
    assert parse_kind(TransactionKind.INCOME) is TransactionKind.INCOME
    with pytest.raises(ValidationError):
        parse_kind('TRANSFER')
    with pytest.raises(ValidationError):
        parse_kind(None)


@pytest.mark.parametrize('confidence, label', [
    (0.95, 'Very High'), (0.9, 'Very High'), (0.75, 'High'), (0.6, 'Medium'), (0.45, 'Low'), (0.3, 'Low'),
])
def test_confidence_label(confidence, label):
    assert CategorizationResult('X', confidence, []).confidence_label == label


def test_result_to_dict():
    data = CategorizationResult('Bills', 0.45, ['Shopping']).to_dict()
    assert data == {
        'category': 'Bills',
        'confidence': 0.45,
        'confidence_label': 'Low',
        'alternatives': ['Shopping'],
    }
