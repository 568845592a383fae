import json

import pytest

from categories import DEFAULT_CATEGORY_KEYWORDS, KeywordDictionary, load_keyword_dictionary
from categorizer import TransactionKind, ValidationError


def test_default_labels_in_order():
    kd = load_keyword_dictionary()
    assert kd.labels('EXPENSE') == [
        'Food & Dining', 'Transportation', 'Shopping', 'Bills', 'Entertainment', 'Healthcare',
    ]
    assert kd.labels(TransactionKind.INCOME) == [
        'Salary', 'Freelance', 'Investment', 'Business', 'Gift', 'Refund',
    ]


def test_lookup_returns_read_only_entries():
    kd = KeywordDictionary(DEFAULT_CATEGORY_KEYWORDS)
    entries = kd.lookup('expense')
    assert isinstance(entries, tuple)
    label, keywords = entries[0]
    assert label == 'Food & Dining'
    assert isinstance(keywords, tuple)
    assert 'starbucks' in keywords


def test_keywords_lowercased_and_deduplicated():
    kd = KeywordDictionary({
        'EXPENSE': {'Travel': ['Hotel', 'hotel', ' Flight ', '']},
        'INCOME': {'Salary': ['salary']},
    })
    assert kd.lookup('EXPENSE') == (('Travel', ('hotel', 'flight')),)


def test_missing_section_rejected():
    with pytest.raises(ValueError):
        KeywordDictionary({'EXPENSE': {'Travel': ['hotel']}})


def test_empty_section_rejected():
    with pytest.raises(ValueError):
        KeywordDictionary({'EXPENSE': {'Travel': []}, 'INCOME': {'Salary': ['salary']}})


def test_unknown_kind_rejected():
    kd = load_keyword_dictionary()
    with pytest.raises(ValidationError):
        kd.lookup('TRANSFER')


def test_load_from_file_keeps_file_order(tmp_path):
    path = tmp_path / 'keywords.json'
    path.write_text(json.dumps({
        'EXPENSE': {'Travel': ['hotel', 'flight'], 'Pets': ['vet', 'kibble']},
        'INCOME': {'Salary': ['payroll']},
    }))
    kd = load_keyword_dictionary(str(path))
    assert kd.labels('EXPENSE') == ['Travel', 'Pets']
    assert kd.to_dict()['INCOME'] == {'Salary': ['payroll']}


def test_load_from_env(tmp_path, monkeypatch):
    path = tmp_path / 'keywords.json'
    path.write_text(json.dumps({
        'EXPENSE': {'Pets': ['vet']},
        'INCOME': {'Salary': ['payroll']},
    }))
    monkeypatch.setenv('CATEGORY_KEYWORDS_FILE', str(path))
    assert load_keyword_dictionary().labels('EXPENSE') == ['Pets']


def test_missing_file_uses_defaults(tmp_path):
    kd = load_keyword_dictionary(str(tmp_path / 'nope.json'))
    assert kd.to_dict() == DEFAULT_CATEGORY_KEYWORDS


def test_malformed_file_raises(tmp_path):
    path = tmp_path / 'keywords.json'
    path.write_text('{not json')
    with pytest.raises(ValueError):
        load_keyword_dictionary(str(path))


@pytest.mark.parametrize('tables', [
    {'EXPENSE': {'Pets': 'vet', 'Travel': ['hotel']}, 'INCOME': {'Salary': ['payroll']}},
    {'EXPENSE': {'Pets': ['vet', 3]}, 'INCOME': {'Salary': ['payroll']}},
    {'EXPENSE': ['vet'], 'INCOME': {'Salary': ['payroll']}},
])
def test_wrongly_shaped_tables_rejected(tables):
    with pytest.raises(ValueError):
        KeywordDictionary(tables)


def test_string_keywords_in_file_raise(tmp_path):
    path = tmp_path / 'keywords.json'
    path.write_text(json.dumps({
        'EXPENSE': {'Pets': 'vet', 'Travel': ['hotel']},
        'INCOME': {'Salary': ['payroll']},
    }))
    with pytest.raises(ValueError):
        load_keyword_dictionary(str(path))
