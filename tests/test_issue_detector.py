import pytest

from sleepy_analyzer.issue_detector import (
    CATEGORY_CPU_HOTSPOT,
    CATEGORY_DEEP_STACK,
    CATEGORY_HOT_LOOP,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    IssueThresholds,
    detect_issues,
    group_by_severity,
)

from conftest import build_profile

SYMBOLS = (
    '0x10 app.exe loop l.c 1\n'
    '0x20 app.exe idle i.c 2\n'
)


def _presence_profile(hits, total):
    """loop 出现在 hits 个样本中，其余样本只有 idle，所有样本耗时相同"""
    lines = ['1.0 0x10\n'] * hits + ['1.0 0x20\n'] * (total - hits)
    return build_profile(SYMBOLS, ''.join(lines))


def _by_category(issues, category):
    return [i for i in issues if i.category == category]


def test_hot_loop_fires_above_threshold():
    issues = detect_issues(_presence_profile(17, 20))
    [hot_loop] = _by_category(issues, CATEGORY_HOT_LOOP)
    assert hot_loop.severity == SEVERITY_CRITICAL
    assert hot_loop.function == 'loop'
    assert hot_loop.module == 'app.exe'
    assert hot_loop.impact == pytest.approx(85.0)


def test_hot_loop_strict_inequality():
    issues = detect_issues(_presence_profile(16, 20))
    assert _by_category(issues, CATEGORY_HOT_LOOP) == []


def test_hotspot_severities():
    # loop 25%, idle 15%, tail 60%
    profile = build_profile(
        SYMBOLS + '0x30 app.exe tail t.c 3\n',
        '0.25 0x10\n0.15 0x20\n0.60 0x30\n',
    )
    hotspots = {i.function: i for i in _by_category(detect_issues(profile), CATEGORY_CPU_HOTSPOT)}
    assert hotspots['tail'].severity == SEVERITY_CRITICAL
    assert hotspots['loop'].severity == SEVERITY_CRITICAL
    assert hotspots['idle'].severity == SEVERITY_HIGH
    assert hotspots['idle'].impact == pytest.approx(15.0)


def test_hotspot_at_exactly_ten_percent_not_reported():
    profile = build_profile(SYMBOLS, '1.0 0x10\n9.0 0x20\n')
    functions = [i.function for i in _by_category(detect_issues(profile), CATEGORY_CPU_HOTSPOT)]
    assert functions == ['idle']


def test_hotspots_limited_to_top_ten():
    symbols = ''.join(f'0x{i:x}0 app.exe f{i} f.c {i}\n' for i in range(1, 13))
    samples = ''.join(f'1.0 0x{i:x}0\n' for i in range(1, 13))
    profile = build_profile(symbols, samples)
    thresholds = IssueThresholds(high_hotspot_percent=1.0)
    assert len(_by_category(detect_issues(profile, thresholds), CATEGORY_CPU_HOTSPOT)) == 10


def test_deep_stack():
    addresses = ' '.join('0x10' for _ in range(51))
    issues = detect_issues(build_profile(SYMBOLS, f'1.0 {addresses}\n'))
    [deep] = _by_category(issues, CATEGORY_DEEP_STACK)
    assert deep.severity == SEVERITY_HIGH
    assert deep.function == ''
    assert deep.impact == 0.0
    assert '51' in deep.description
    # 无数值影响的排在最后
    assert issues[-1] is deep


def test_stack_of_fifty_is_not_deep():
    addresses = ' '.join('0x10' for _ in range(50))
    issues = detect_issues(build_profile(SYMBOLS, f'1.0 {addresses}\n'))
    assert _by_category(issues, CATEGORY_DEEP_STACK) == []


def test_sorted_by_impact(profile):
    impacts = [i.impact for i in detect_issues(profile)]
    assert impacts == sorted(impacts, reverse=True)
    assert impacts == pytest.approx([100.0, 75.0, 50.0, 25.0])


def test_all_rules_evaluated():
    addresses = ' '.join(['0x10'] * 60)
    issues = detect_issues(build_profile(SYMBOLS, f'1.0 {addresses}\n'))
    assert {i.category for i in issues} == {CATEGORY_DEEP_STACK, CATEGORY_CPU_HOTSPOT, CATEGORY_HOT_LOOP}


def test_custom_thresholds():
    profile = _presence_profile(16, 20)
    issues = detect_issues(profile, IssueThresholds(hot_loop_percent=75.0))
    assert len(_by_category(issues, CATEGORY_HOT_LOOP)) == 1


def test_empty_profile():
    assert detect_issues(build_profile()) == []


def test_group_by_severity(profile):
    groups = group_by_severity(detect_issues(profile))
    assert len(groups[SEVERITY_CRITICAL]) == 4
    assert groups[SEVERITY_HIGH] == []
