import pytest

from rescuebot.alg import PID, PIDParams, limit, slope_ctrl


def test_limit_clamps_above_upper():
    assert limit(5.0, 1.0, -1.0) == 1.0


def test_limit_clamps_below_lower():
    assert limit(-5.0, 1.0, -1.0) == -1.0


def test_limit_passes_value_inside_range():
    assert limit(0.25, 1.0, -1.0) == 0.25


def test_slope_ctrl_returns_target_when_close():
    assert slope_ctrl(0.95, 1.0, 0.1, 0.1) == 1.0


@pytest.mark.parametrize(
    "start, target",
    [(0.5, 3.0), (2.5, 0.2), (-0.5, -3.0), (-2.5, -0.2)],
)
def test_slope_ctrl_converges_without_overshoot(start, target):
    value = start
    for _ in range(100):
        new_value = slope_ctrl(value, target, 0.1, 0.2)
        assert abs(new_value - target) <= abs(value - target)
        value = new_value
        if value == target:
            break
    assert value == target


def test_slope_ctrl_step_bounded_by_rates():
    value = slope_ctrl(0.5, 3.0, 0.1, 0.2)
    assert 0.5 < value <= 0.5 + 0.1 + 1e-12


def test_params_from_sequence():
    params = PIDParams.from_sequence([1.0, 2.0, 3.0, 4.0, 5.0])
    assert params == PIDParams(kp=1.0, ki=2.0, kd=3.0, sum_max=4.0, output_max=5.0)


@pytest.mark.parametrize("values", [[], [1.0, 2.0], [1, 2, 3, 4, 5, 6]])
def test_params_from_sequence_wrong_length(values):
    with pytest.raises(ValueError):
        PIDParams.from_sequence(values)


def test_proportional_output_and_state():
    pid = PID(ref=3.0, fdb=1.0)
    params = PIDParams(kp=1.0, sum_max=100.0, output_max=100.0)
    out = pid.calc(params)
    assert out == pytest.approx(pid.ref - pid.fdb)
    assert pid.output == out
    assert pid.err == pytest.approx(pid.ref - pid.fdb)
    assert pid.sum == pytest.approx(pid.err)


def test_output_is_clamped():
    pid = PID(ref=50.0, fdb=0.0)
    params = PIDParams(kp=1.0, sum_max=1000.0, output_max=10.0)
    assert pid.calc(params) == 10.0
    pid.ref, pid.fdb = 0.0, 50.0
    assert pid.calc(params) == -10.0


def test_integral_is_clamped():
    pid = PID(ref=5.0)
    params = PIDParams(ki=1.0, sum_max=7.0, output_max=1000.0)
    for _ in range(10):
        pid.calc(params)
    assert pid.sum == 7.0
    assert pid.output == 7.0


def test_derivative_vanishes_with_constant_error():
    pid = PID(ref=4.0, fdb=1.0)
    params = PIDParams(kd=1.0, sum_max=100.0, output_max=100.0)
    first = pid.calc(params)
    second = pid.calc(params)
    assert first == pytest.approx(pid.err)
    assert second == pytest.approx(0.0)
    assert pid.err_last == pid.err


def test_clear_resets_everything():
    pid = PID(ref=1.0, fdb=2.0, err=3.0, err_last=4.0, sum=5.0, output=6.0)
    pid.clear()
    assert pid == PID()


def test_add_ref_accumulates():
    pid = PID(ref=1.5)
    pid.add_ref(2.5)
    pid.add_ref(-1.0)
    assert pid.ref == pytest.approx(1.5 + 2.5 - 1.0)