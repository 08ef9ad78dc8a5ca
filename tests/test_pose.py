import math

import numpy as np
import pytest

from faceoverlay.overlays import EyeSpanOverlay, FaceBottomOverlay, HeadTopOverlay
from faceoverlay.pose import resolve_pose

from conftest import make_face

LEFT, RIGHT, FOREHEAD, CHIN, LIP = 1, 2, 3, 4, 5
CHEEK_L, CHEEK_R = 6, 7


def eye_span(**kw):
    kw.setdefault("rotation_offset", 0.0)
    return EyeSpanOverlay(id="glasses", image="g.png", left_eye=(LEFT, 11), right_eye=(RIGHT, 12), **kw)


def head_top(**kw):
    return HeadTopOverlay(
        id="hat", image="h.png", forehead=(FOREHEAD,), chin=(CHIN,), left_eye=(LEFT,), right_eye=(RIGHT,), **kw
    )


def face_bottom(**kw):
    return FaceBottomOverlay(id="beard", image="b.png", bottom=(LIP,), left_eye=(LEFT,), right_eye=(RIGHT,), **kw)


class TestEyeSpan:
    def test_level_eyes_with_half_turn_offset(self):
        face = make_face({LEFT: (100, 200), RIGHT: (200, 200)}, n=20)
        pose = resolve_pose(face, eye_span(rotation_offset=math.pi, scale=2))
        assert pose.success
        assert pose.roll == pytest.approx(math.pi)
        assert pose.render_width == pytest.approx(200.0)
        np.testing.assert_allclose(pose.anchor, [150.0, 200.0, 0.0])

    def test_tilted_eyes_give_roll(self):
        face = make_face({LEFT: (0, 0, 2), RIGHT: (10, 10, 4)}, n=20)
        pose = resolve_pose(face, eye_span())
        assert pose.roll == pytest.approx(math.pi / 4)
        assert pose.render_width == pytest.approx(math.hypot(10, 10))
        np.testing.assert_allclose(pose.anchor, [5.0, 5.0, 3.0])

    def test_falls_back_to_later_candidates(self):
        face = make_face({11: (0, 0), 12: (30, 0)}, n=20)
        pose = resolve_pose(face, eye_span())
        assert pose.success
        assert pose.render_width == pytest.approx(30.0)

    def test_missing_eye_is_a_failure_not_an_error(self):
        face = make_face({LEFT: (0, 0)}, n=20)
        pose = resolve_pose(face, eye_span())
        assert not pose.success
        assert pose.reason == "missing:right_eye"
        assert pose.anchor is None

    def test_coincident_eyes_fail_with_zero_width(self):
        face = make_face({LEFT: (5, 5), RIGHT: (5, 5)}, n=20)
        pose = resolve_pose(face, eye_span())
        assert not pose.success
        assert pose.reason == "zero_width"

    def test_width_positive_for_distinct_eyes(self):
        rng = np.random.default_rng(7)
        cfg = eye_span(scale=1.7)
        for _ in range(200):
            left, right = rng.uniform(-500, 500, size=(2, 2))
            if np.allclose(left, right):
                continue
            face = make_face({LEFT: tuple(left), RIGHT: tuple(right)}, n=20)
            pose = resolve_pose(face, cfg)
            assert pose.success
            assert pose.render_width > 0


class TestHeadTop:
    def test_places_anchor_above_forehead(self):
        face = make_face({FOREHEAD: (100, 100), CHIN: (100, 300), LEFT: (50, 150), RIGHT: (150, 150)}, n=20)
        pose = resolve_pose(face, head_top())
        assert pose.success
        # up = forward = (0, -1): anchor = forehead + up*80 - forward*70
        np.testing.assert_allclose(pose.anchor, [100.0, 90.0, 0.0])
        assert pose.render_width == pytest.approx(150.0)
        assert pose.roll == pytest.approx(0.0)

    def test_depth_enters_forward_and_up(self):
        pts = {FOREHEAD: (100, 100, -40), CHIN: (100, 300, 0), LEFT: (50, 150, 0), RIGHT: (150, 150, 0)}
        pose = resolve_pose(make_face(pts, n=20), head_top())
        forehead = np.array(pts[FOREHEAD], dtype=float)
        chin = np.array(pts[CHIN], dtype=float)
        eye_mid = np.array([100.0, 150.0, 0.0])
        h = 200.0
        fwd = (forehead - eye_mid) / np.linalg.norm(forehead - eye_mid)
        up = (forehead - chin) / np.linalg.norm(forehead - chin)
        np.testing.assert_allclose(pose.anchor, forehead + up * h * 0.4 - fwd * h * 0.35)

    @pytest.mark.parametrize("missing", [FOREHEAD, CHIN, LEFT, RIGHT])
    def test_any_missing_landmark_fails(self, missing):
        pts = {FOREHEAD: (100, 100), CHIN: (100, 300), LEFT: (50, 150), RIGHT: (150, 150)}
        del pts[missing]
        pose = resolve_pose(make_face(pts, n=20), head_top())
        assert not pose.success
        assert pose.reason.startswith("missing:")

    def test_fails_without_forehead_even_with_everything_else(self):
        pts = {CHIN: (100, 300), LEFT: (50, 150), RIGHT: (150, 150), CHEEK_L: (0, 200), CHEEK_R: (200, 200)}
        pose = resolve_pose(make_face(pts, n=20), head_top(width_ref=((CHEEK_L,), (CHEEK_R,))))
        assert not pose.success
        assert pose.reason == "missing:forehead"

    def test_forehead_on_eye_line_is_degenerate(self):
        pts = {FOREHEAD: (100, 150), CHIN: (100, 300), LEFT: (50, 150), RIGHT: (150, 150)}
        pose = resolve_pose(make_face(pts, n=20), head_top())
        assert not pose.success
        assert pose.reason == "degenerate:forward"

    def test_forehead_on_chin_is_degenerate(self):
        pts = {FOREHEAD: (100, 100), CHIN: (100, 100), LEFT: (50, 150), RIGHT: (150, 150)}
        pose = resolve_pose(make_face(pts, n=20), head_top())
        assert not pose.success
        assert pose.reason == "degenerate:up"

    def test_width_reference_pair_overrides_eye_heuristic(self):
        pts = {
            FOREHEAD: (100, 100),
            CHIN: (100, 300),
            LEFT: (50, 150),
            RIGHT: (150, 150),
            CHEEK_L: (20, 200),
            CHEEK_R: (180, 200),
        }
        pose = resolve_pose(make_face(pts, n=20), head_top(width_ref=((CHEEK_L,), (CHEEK_R,)), scale=2.0))
        assert pose.render_width == pytest.approx(320.0)

    def test_unresolvable_width_reference_falls_back_to_eyes(self):
        pts = {FOREHEAD: (100, 100), CHIN: (100, 300), LEFT: (50, 150), RIGHT: (150, 150)}
        pose = resolve_pose(make_face(pts, n=20), head_top(width_ref=((CHEEK_L,), (CHEEK_R,))))
        assert pose.render_width == pytest.approx(150.0)


class TestFaceBottom:
    def test_anchor_is_bottom_landmark_with_zero_depth(self):
        pts = {LIP: (120, 260), LEFT: (80, 150), RIGHT: (160, 150)}
        pose = resolve_pose(make_face(pts, n=20), face_bottom())
        assert pose.success
        np.testing.assert_allclose(pose.anchor, [120.0, 260.0, 0.0])
        assert pose.render_width == pytest.approx(80 * 1.2)
        assert pose.roll == pytest.approx(0.0)

    def test_width_reference_pair(self):
        pts = {LIP: (120, 260), CHEEK_L: (90, 270), CHEEK_R: (150, 270)}
        pose = resolve_pose(make_face(pts, n=20), face_bottom(width_ref=((CHEEK_L,), (CHEEK_R,)), rotation_offset=0.3))
        assert pose.render_width == pytest.approx(60.0)
        # No eyes: roll is the offset alone
        assert pose.roll == pytest.approx(0.3)

    def test_roll_from_eyes_when_present(self):
        pts = {LIP: (0, 0), LEFT: (0, 0), RIGHT: (10, -10)}
        pose = resolve_pose(make_face(pts, n=20), face_bottom(rotation_offset=0.1))
        assert pose.roll == pytest.approx(-math.pi / 4 + 0.1)

    def test_no_width_source_fails(self):
        pose = resolve_pose(make_face({LIP: (0, 0), LEFT: (0, 0)}, n=20), face_bottom())
        assert not pose.success
        assert pose.reason == "missing:width"

    def test_missing_bottom_fails(self):
        pose = resolve_pose(make_face({LEFT: (0, 0), RIGHT: (10, 0)}, n=20), face_bottom())
        assert not pose.success
        assert pose.reason == "missing:bottom"


def test_empty_face_never_raises():
    face = make_face({}, n=0)
    for cfg in (eye_span(), head_top(), face_bottom()):
        assert resolve_pose(face, cfg).success is False
