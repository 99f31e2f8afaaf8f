"""Rotation helpers: Euler angles, body-to-NED DCMs and quaternions.

Conventions
-----------
* Euler angles are ``[roll, pitch, yaw]`` in radians, ZYX sequence.
* DCMs rotate body-frame vectors into the NED frame (``C_bn``).
* Quaternions are scalar-first ``[w, x, y, z]`` and represent the same
  body-to-NED rotation (``R(q) == C_bn``).
"""

import numpy as np
from scipy.spatial.transform import Rotation


def skew(v: np.ndarray) -> np.ndarray:
    """3×3 skew-symmetric (cross-product) matrix, ``skew(a) @ b == a × b``."""
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ])


def euler2dcm(euler: np.ndarray) -> np.ndarray:
    """Return body-to-NED DCM from ``[roll, pitch, yaw]``."""
    roll, pitch, yaw = euler
    return Rotation.from_euler("ZYX", [yaw, pitch, roll]).as_matrix()


def dcm2euler(C: np.ndarray) -> np.ndarray:
    """Return ``[roll, pitch, yaw]`` from a body-to-NED DCM."""
    roll = np.arctan2(C[2, 1], C[2, 2])
    pitch = -np.arcsin(np.clip(C[2, 0], -1.0, 1.0))
    yaw = np.arctan2(C[1, 0], C[0, 0])
    return np.array([roll, pitch, yaw])


def rot_to_quaternion(R: np.ndarray) -> np.ndarray:
    """Convert a rotation matrix to a quaternion."""
    tr = np.trace(R)
    if tr > 0:
        S = np.sqrt(tr + 1.0) * 2
        qw = 0.25 * S
        qx = (R[2, 1] - R[1, 2]) / S
        qy = (R[0, 2] - R[2, 0]) / S
        qz = (R[1, 0] - R[0, 1]) / S
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        S = np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2]) * 2
        qw = (R[2, 1] - R[1, 2]) / S
        qx = 0.25 * S
        qy = (R[0, 1] + R[1, 0]) / S
        qz = (R[0, 2] + R[2, 0]) / S
    elif R[1, 1] > R[2, 2]:
        S = np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2]) * 2
        qw = (R[0, 2] - R[2, 0]) / S
        qx = (R[0, 1] + R[1, 0]) / S
        qy = 0.25 * S
        qz = (R[1, 2] + R[2, 1]) / S
    else:
        S = np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1]) * 2
        qw = (R[1, 0] - R[0, 1]) / S
        qx = (R[0, 2] + R[2, 0]) / S
        qy = (R[1, 2] + R[2, 1]) / S
        qz = 0.25 * S
    q = np.array([qw, qx, qy, qz])
    return q / np.linalg.norm(q)


def quaternion_to_rot(q: np.ndarray) -> np.ndarray:
    """Convert [qw, qx, qy, qz] quaternion to rotation matrix."""
    qw, qx, qy, qz = q
    return np.array([
        [1 - 2 * (qy ** 2 + qz ** 2), 2 * (qx * qy - qw * qz), 2 * (qx * qz + qw * qy)],
        [2 * (qx * qy + qw * qz), 1 - 2 * (qx ** 2 + qz ** 2), 2 * (qy * qz - qw * qx)],
        [2 * (qx * qz - qw * qy), 2 * (qy * qz + qw * qx), 1 - 2 * (qx ** 2 + qy ** 2)],
    ])


def euler2qua(euler: np.ndarray) -> np.ndarray:
    """Return body-to-NED quaternion from ``[roll, pitch, yaw]``."""
    return rot_to_quaternion(euler2dcm(euler))


def qua2euler(q: np.ndarray) -> np.ndarray:
    """Return ``[roll, pitch, yaw]`` (rad) from w-x-y-z quaternion."""
    w, x, y, z = q
    t2 = +2.0 * (w * y - z * x)
    t2 = np.clip(t2, -1.0, 1.0)
    pitch = np.arcsin(t2)
    t0 = +2.0 * (w * x + y * z)
    t1 = +1.0 - 2.0 * (x * x + y * y)
    roll = np.arctan2(t0, t1)
    t3 = +2.0 * (w * z + x * y)
    t4 = +1.0 - 2.0 * (y * y + z * z)
    yaw = np.arctan2(t3, t4)
    return np.array([roll, pitch, yaw])


def quat_multiply(q: np.ndarray, r: np.ndarray) -> np.ndarray:
    """Quaternion multiplication."""
    w0, x0, y0, z0 = q
    w1, x1, y1, z1 = r
    return np.array([
        w0 * w1 - x0 * x1 - y0 * y1 - z0 * z1,
        w0 * x1 + x0 * w1 + y0 * z1 - z0 * y1,
        w0 * y1 - x0 * z1 + y0 * w1 + z0 * x1,
        w0 * z1 + x0 * y1 - y0 * x1 + z0 * w1,
    ])


def quat_normalize(q: np.ndarray) -> np.ndarray:
    n = np.linalg.norm(q)
    if n == 0 or not np.isfinite(n):
        raise ValueError("quaternion norm is zero or non-finite")
    return q / n


def quat_from_rotvec(theta: np.ndarray) -> np.ndarray:
    """Quaternion of the rotation vector ``theta`` (axis × angle)."""
    angle = np.linalg.norm(theta)
    if angle == 0:
        return np.array([1.0, 0.0, 0.0, 0.0])
    axis = theta / angle
    half = angle / 2.0
    return np.array([np.cos(half), *(np.sin(half) * axis)])


def rotvec_to_dcm(theta: np.ndarray) -> np.ndarray:
    """DCM of the rotation vector ``theta``."""
    return Rotation.from_rotvec(theta).as_matrix()


def qua_error_matrix(q: np.ndarray) -> np.ndarray:
    """4×3 matrix mapping a small NED rotation ``δψ`` to ``δq``.

    ``[1, δψ/2] ⊗ q ≈ q + 0.5 * qua_error_matrix(q) @ δψ``.
    """
    w = q[0]
    u = q[1:]
    return np.vstack([-u.reshape(1, 3), w * np.eye(3) - skew(u)])


def orthonormalize(C: np.ndarray) -> np.ndarray:
    """Return the rotation matrix closest to ``C`` (SVD projection)."""
    U, _, Vt = np.linalg.svd(C)
    return U @ Vt
