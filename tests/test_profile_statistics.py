import pytest

from sleepy_analyzer.profile_statistics import ProfileStatistics, compute_statistics

from conftest import build_profile


def test_statistics(profile):
    stats = compute_statistics(profile)
    assert stats.total_time == pytest.approx(1.0)
    assert stats.total_samples == 4
    assert stats.total_symbols == 4
    assert stats.average_stack_depth == pytest.approx(2.0)
    assert stats.max_stack_depth == 3
    assert stats.min_stack_depth == 1
    # 未解析模块不计入，未解析函数计入
    assert stats.unique_modules == 3
    assert stats.unique_functions == 5


def test_zero_samples_all_zero():
    assert compute_statistics(build_profile()) == ProfileStatistics()


def test_zero_samples_keeps_symbol_count():
    stats = compute_statistics(build_profile('0x10 a.dll f x.c 1\n'))
    assert stats.total_symbols == 1
    assert stats.total_samples == 0
    assert stats.min_stack_depth == 0


def test_empty_stack_gives_zero_min_depth():
    stats = compute_statistics(build_profile('', '1.0\n2.0 0x1 0x2\n'))
    assert stats.min_stack_depth == 0
    assert stats.max_stack_depth == 2
    assert stats.average_stack_depth == pytest.approx(1.0)


def test_deterministic(profile):
    assert compute_statistics(profile) == compute_statistics(profile)


def test_functions_counted_by_module_and_name():
    # a!b / c 和 a / b!c 显示名相同，但是两个函数
    profile = build_profile('0x1000 a!b c x.c 1\n0x2000 a b!c y.c 2\n', '1.0 0x1000 0x2000\n')
    stats = compute_statistics(profile)
    assert stats.unique_functions == 2
    assert stats.unique_modules == 2
