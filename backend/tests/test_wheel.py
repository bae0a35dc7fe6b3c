import math
import random

import pytest

from wheelroom.models import Item
from wheelroom.services.wheel import DECELERATION_RATIO, INITIAL_SPEED, Wheel


def make_wheel(weights, seed=0):
    wheel = Wheel(rng=random.Random(seed))
    wheel.set_items([Item(name, name.title(), weight) for name, weight in weights])
    return wheel


def probabilities(wheel):
    return {item.id: item.probability for item in wheel.items}


def test_probabilities_sum_to_one():
    wheel = make_wheel([('a', 1), ('b', 2.5), ('c', 0.1), ('d', 7)])
    assert abs(sum(probabilities(wheel).values()) - 1) < 1e-9
    wheel.ban('b')
    assert abs(sum(probabilities(wheel).values()) - 1) < 1e-9
    wheel.ban('a')
    wheel.ban('c')
    assert probabilities(wheel) == {'d': 1.0}


def test_ban_and_unban_recompute_probabilities():
    wheel = make_wheel([('apple', 1), ('banana', 3)])
    assert probabilities(wheel) == pytest.approx({'apple': 0.25, 'banana': 0.75})

    assert wheel.ban('apple') is True
    assert probabilities(wheel) == pytest.approx({'banana': 1.0})
    assert [i.id for i in wheel.banned_items] == ['apple']
    assert wheel.find_item('apple').probability == 0.0

    assert wheel.unban('apple') is True
    assert probabilities(wheel) == pytest.approx({'apple': 0.25, 'banana': 0.75})
    assert wheel.banned_items == []


def test_ban_unban_restores_order_and_probabilities():
    wheel = make_wheel([('a', 1), ('b', 2), ('c', 3), ('d', 4)])
    before = [(i.id, i.probability) for i in wheel.items]
    wheel.ban('b')
    assert [i.id for i in wheel.items] == ['a', 'c', 'd']
    wheel.unban('b')
    assert [(i.id, i.probability) for i in wheel.items] == before


def test_ban_and_unban_are_idempotent():
    wheel = make_wheel([('a', 1), ('b', 1)])
    assert wheel.ban('a') is True
    assert wheel.ban('a') is False
    assert wheel.unban('b') is False
    assert wheel.unban('missing') is False
    assert wheel.ban('missing') is False
    assert [i.id for i in wheel.items] == ['b']


def test_set_items_clears_bans():
    wheel = make_wheel([('a', 1), ('b', 1)])
    wheel.ban('a')
    wheel.set_items([Item('x', 'X', 2), Item('a', 'A', 2)])
    assert wheel.banned_items == []
    assert probabilities(wheel) == pytest.approx({'x': 0.5, 'a': 0.5})


def test_current_item_is_cumulative_lookup():
    wheel = make_wheel([('apple', 1), ('banana', 3)])
    two_pi = 2 * math.pi

    wheel.angle = 0.0
    assert wheel.current_item().id == 'apple'
    wheel.angle = -0.2 * two_pi
    assert wheel.current_item().id == 'apple'
    wheel.angle = 0.2 * two_pi
    assert wheel.current_item().id == 'apple'
    # Boundaries belong to the next item
    wheel.angle = -0.25 * two_pi
    assert wheel.current_item().id == 'banana'
    wheel.angle = -0.9 * two_pi
    assert wheel.current_item().id == 'banana'


def test_current_item_always_returns_an_item():
    wheel = make_wheel([('a', 0.3), ('b', 1.7), ('c', 5)])
    two_pi = 2 * math.pi
    angles = [0.0, two_pi, -two_pi, 100 * two_pi, -1000 * two_pi, 1e-12, -1e-12,
              two_pi - 1e-15, -(two_pi - 1e-15), math.pi, -math.pi, 1e9, -1e9]
    rng = random.Random(42)
    angles += [rng.uniform(-1e4, 1e4) for _ in range(500)]
    ids = {i.id for i in wheel.items}
    for angle in angles:
        wheel.angle = angle
        assert wheel.current_item().id in ids


def test_current_item_with_single_remaining_item():
    wheel = make_wheel([('apple', 1), ('banana', 3)])
    wheel.ban('apple')
    for angle in (0.0, -1.0, -math.pi, 12.5):
        wheel.angle = angle
        assert wheel.current_item().id == 'banana'


def test_current_item_without_items():
    assert Wheel().current_item() is None
    wheel = make_wheel([('a', 1)])
    wheel.ban('a')
    assert wheel.current_item() is None


def test_spin_sets_initial_state():
    wheel = make_wheel([('a', 1)])
    assert wheel.spin() is True
    assert wheel.is_rolling
    assert wheel.speed == INITIAL_SPEED
    assert wheel.deceleration_ratio == DECELERATION_RATIO
    assert -10 <= wheel.angle <= 9
    assert 500 <= wheel.remaining_full_speed_ticks <= 699


def test_spin_while_rolling_is_rejected():
    wheel = make_wheel([('a', 1)])
    wheel.spin()
    wheel.tick()
    state = (wheel.angle, wheel.speed, wheel.remaining_full_speed_ticks)
    assert wheel.spin() is False
    assert (wheel.angle, wheel.speed, wheel.remaining_full_speed_ticks) == state


def test_spin_randomness_comes_from_injected_rng():
    first = make_wheel([('a', 1)], seed=3)
    second = make_wheel([('a', 1)], seed=3)
    first.spin()
    second.spin()
    assert first.angle == second.angle
    assert first.remaining_full_speed_ticks == second.remaining_full_speed_ticks


def test_tick_holds_full_speed_then_decays():
    wheel = make_wheel([('a', 1)])
    wheel.spin()
    wheel.remaining_full_speed_ticks = 3
    angle = wheel.angle
    for _ in range(3):
        wheel.tick()
        assert wheel.speed == INITIAL_SPEED
        assert wheel.angle == pytest.approx(angle - INITIAL_SPEED)
        angle = wheel.angle
    assert wheel.remaining_full_speed_ticks == 0

    wheel.tick()
    assert wheel.speed == pytest.approx(INITIAL_SPEED * DECELERATION_RATIO)
    assert wheel.angle == pytest.approx(angle - INITIAL_SPEED * DECELERATION_RATIO)


def test_tick_snaps_to_stop_and_angle_never_increases():
    wheel = make_wheel([('a', 1), ('b', 1)])
    wheel.spin()
    previous = wheel.angle
    ticks = 0
    while wheel.is_rolling and ticks < 5000:
        wheel.tick()
        assert wheel.angle <= previous
        previous = wheel.angle
        ticks += 1
    assert not wheel.is_rolling
    assert wheel.speed == 0
    # Decay from 0.08 to 0.002 at 0.989 per tick takes a few hundred ticks
    assert 500 + 300 < ticks < 700 + 400

    wheel.tick()
    assert wheel.angle == previous


def test_tick_without_items_is_noop():
    wheel = Wheel(rng=random.Random(1))
    wheel.spin()
    state = (wheel.angle, wheel.speed, wheel.remaining_full_speed_ticks)
    wheel.tick()
    assert (wheel.angle, wheel.speed, wheel.remaining_full_speed_ticks) == state


def test_setup_payload():
    wheel = make_wheel([('apple', 1), ('banana', 3)])
    wheel.ban('banana')
    setup = wheel.setup('fruit')
    assert setup['filter'] == 'fruit'
    assert setup['items'] == [{'id': 'apple', 'name': 'Apple', 'weight': 1.0, 'probability': 1.0}]
    assert [i['id'] for i in setup['bannedItems']] == ['banana']


def test_item_rejects_non_positive_weight():
    with pytest.raises(ValueError):
        Item('a', 'A', 0)
    with pytest.raises(ValueError):
        Item.from_dict({'id': 'a', 'weight': -2})
    assert Item.from_dict({'id': 7}).name == '7'
