# collision.py

import numpy as np
from scipy.spatial import ConvexHull
from scipy.spatial import QhullError


class Circle:
    """Disc obstacle."""

    def __init__(self, center, radius):
        self.center = np.asarray(center, dtype=float)
        self.radius = float(radius)
        if self.radius <= 0:
            raise ValueError(f"circle radius must be positive, got {radius}")

    def contains(self, p):
        return bool(np.linalg.norm(np.asarray(p, dtype=float) - self.center) <= self.radius)

    def segment_hit(self, p1, p2):
        """
        Parameter t in [0, 1] of the first point of segment p1-p2 inside the
        circle, or None.
        """
        d = p2 - p1
        f = p1 - self.center
        c = np.dot(f, f) - self.radius * self.radius
        if c <= 0:
            return 0.0

        a = np.dot(d, d)
        if a < 1e-12:  # p1 == p2
            return None

        b = 2 * np.dot(f, d)
        discriminant = b * b - 4 * a * c
        if discriminant < 0:
            return None

        t1 = (-b - np.sqrt(discriminant)) / (2 * a)
        if 0 <= t1 <= 1:
            return float(t1)
        return None


class Polygon:
    """
    Convex polygon obstacle.

    Vertices are taken as the convex hull of the given points, so they end
    up in counter-clockwise order whatever order they were given in.
    """

    def __init__(self, points):
        pts = np.asarray(points, dtype=float)
        if pts.ndim != 2 or pts.shape[1] != 2 or len(pts) < 3:
            raise ValueError("a polygon needs at least three 2D points")
        try:
            hull = ConvexHull(pts)
        except QhullError as exc:
            raise ValueError(f"degenerate polygon: {exc}") from exc
        self.vertices = pts[hull.vertices]

    @classmethod
    def rectangle(cls, corner1, corner2):
        (x1, y1), (x2, y2) = corner1, corner2
        return cls([[x1, y1], [x2, y1], [x2, y2], [x1, y2]])

    def _edges(self):
        v = self.vertices
        return v, np.roll(v, -1, axis=0) - v

    def contains(self, p):
        p = np.asarray(p, dtype=float)
        starts, edges = self._edges()
        rel = p - starts
        cross = edges[:, 0] * rel[:, 1] - edges[:, 1] * rel[:, 0]
        return bool(np.all(cross >= 0))

    def segment_hit(self, p1, p2):
        """
        Parameter t in [0, 1] where segment p1-p2 enters the polygon, or None.

        Cyrus-Beck clipping against the inward half planes of the edges.
        """
        d = p2 - p1
        starts, edges = self._edges()
        # inward normals of a counter-clockwise polygon
        normals = np.column_stack([-edges[:, 1], edges[:, 0]])
        t_enter, t_exit = 0.0, 1.0
        for q, n in zip(starts, normals):
            num = np.dot(n, p1 - q)
            den = np.dot(n, d)
            if abs(den) < 1e-12:
                if num < 0:
                    return None  # parallel and outside
                continue
            t = -num / den
            if den > 0:
                t_enter = max(t_enter, t)
            else:
                t_exit = min(t_exit, t)
            if t_enter > t_exit:
                return None
        return float(t_enter)


class ObstacleSet:
    """Ordered collection of circle and polygon obstacles."""

    def __init__(self, obstacles=None):
        self.obstacles = list(obstacles or [])

    def add_circle(self, center, radius):
        self.obstacles.append(Circle(center, radius))

    def add_polygon(self, points):
        self.obstacles.append(Polygon(points))

    def add_rectangle(self, corner1, corner2):
        self.obstacles.append(Polygon.rectangle(corner1, corner2))

    def __iter__(self):
        return iter(self.obstacles)

    def __len__(self):
        return len(self.obstacles)


def get_boat_corners(position, heading, width, length):
    """
    Get the four corners of a rectangular footprint.

    Parameters
    ----------
    position : np.array
        Center position [x, y]
    heading : float
        Heading angle in radians
    width : float
        Footprint width
    length : float
        Footprint length

    Returns
    -------
    np.array
        Array of shape (4, 2) containing corner positions
    """
    half_length = length / 2.0
    half_width = width / 2.0

    local_corners = np.array([
        [half_length, half_width],    # Front right
        [half_length, -half_width],   # Front left
        [-half_length, -half_width],  # Back left
        [-half_length, half_width]    # Back right
    ])

    cos_h = np.cos(heading)
    sin_h = np.sin(heading)
    rotation = np.array([[cos_h, -sin_h],
                         [sin_h, cos_h]])

    return local_corners @ rotation.T + position


def create_swept_hull(start_pos, start_heading, end_pos, end_heading, width, length):
    """Convex hull around the footprint at the start and end poses."""
    start_corners = get_boat_corners(start_pos, start_heading, width, length)
    end_corners = get_boat_corners(end_pos, end_heading, width, length)
    all_points = np.vstack([start_corners, end_corners])
    hull = ConvexHull(all_points)
    return all_points[hull.vertices]


def _separated_on(axis, poly_a, poly_b):
    proj_a = poly_a @ axis
    proj_b = poly_b @ axis
    return proj_a.max() < proj_b.min() or proj_b.max() < proj_a.min()


def sat_polygon_circle(polygon_vertices, circle_center, circle_radius):
    """
    Check collision between a polygon and a circle using Separating Axis Theorem.

    Returns True if collision detected.
    """
    n_vertices = len(polygon_vertices)

    # Test all polygon edge normals
    for i in range(n_vertices):
        edge = polygon_vertices[(i + 1) % n_vertices] - polygon_vertices[i]
        normal = np.array([-edge[1], edge[0]])
        normal = normal / np.linalg.norm(normal)

        poly_projections = polygon_vertices @ normal
        circle_projection = circle_center @ normal
        if poly_projections.max() < circle_projection - circle_radius or \
           circle_projection + circle_radius < poly_projections.min():
            return False  # Separating axis found, no collision

    # Test axis from polygon vertices to circle center
    for vertex in polygon_vertices:
        axis = circle_center - vertex
        axis_length = np.linalg.norm(axis)
        if axis_length < 1e-10:
            continue
        axis = axis / axis_length

        poly_projections = polygon_vertices @ axis
        circle_projection = circle_center @ axis
        if poly_projections.max() < circle_projection - circle_radius or \
           circle_projection + circle_radius < poly_projections.min():
            return False

    return True


def sat_polygon_polygon(poly_a, poly_b):
    """Separating Axis Theorem for two convex polygons. True if they overlap."""
    for poly in (poly_a, poly_b):
        edges = np.roll(poly, -1, axis=0) - poly
        for edge in edges:
            axis = np.array([-edge[1], edge[0]])
            if _separated_on(axis, poly_a, poly_b):
                return False
    return True


class CollisionChecker:
    """
    Collision queries against a static obstacle set.

    Points live in the 2D obstacle plane. Without a footprint the robot is
    a point; with ``footprint=(width, length)`` the rectangle swept between
    two poses is tested with SAT. The checker never mutates its obstacles
    and is safe to share between propagation worker threads.

    Parameters
    ----------
    obstacles : ObstacleSet or iterable
        Circle and Polygon obstacles.
    bounds : array-like, optional
        World bounds [[x_min, x_max], [y_min, y_max]]; leaving them is a collision.
    footprint : tuple, optional
        (width, length) of a rectangular robot.
    """

    def __init__(self, obstacles=None, bounds=None, footprint=None):
        self.obstacles = list(obstacles or [])
        self.bounds = None if bounds is None else np.asarray(bounds, dtype=float)[:2]
        self.footprint = footprint

    def _in_bounds(self, pts):
        if self.bounds is None:
            return True
        pts = np.atleast_2d(pts)
        return bool(np.all(pts >= self.bounds[:, 0]) and np.all(pts <= self.bounds[:, 1]))

    def _hull_free(self, hull):
        if not self._in_bounds(hull):
            return False
        for obs in self.obstacles:
            if isinstance(obs, Circle):
                if sat_polygon_circle(hull, obs.center, obs.radius):
                    return False
            elif sat_polygon_polygon(hull, obs.vertices):
                return False
        return True

    def is_free(self, point, heading=0.0):
        """True if the robot placed at point does not touch any obstacle."""
        p = np.asarray(point, dtype=float)
        if self.footprint is not None:
            width, length = self.footprint
            return self._hull_free(get_boat_corners(p, heading, width, length))
        if not self._in_bounds(p):
            return False
        return not any(obs.contains(p) for obs in self.obstacles)

    def segment_is_free(self, point_a, point_b, heading_a=0.0, heading_b=0.0):
        """
        Test the straight motion from point_a to point_b.

        Returns
        -------
        (bool, np.array or None)
            Whether the motion is free, and the first point of collision
            along it when it is not.
        """
        a = np.asarray(point_a, dtype=float)
        b = np.asarray(point_b, dtype=float)

        if self.footprint is not None:
            width, length = self.footprint
            if not self._hull_free(get_boat_corners(a, heading_a, width, length)):
                return False, a
            try:
                hull = create_swept_hull(a, heading_a, b, heading_b, width, length)
            except QhullError:
                hull = get_boat_corners(b, heading_b, width, length)
            if not self._hull_free(hull):
                return False, b
            return True, None

        t_first = None
        if not self._in_bounds(a):
            t_first = 0.0
        elif not self._in_bounds(b):
            t_first = 1.0
        for obs in self.obstacles:
            t = obs.segment_hit(a, b)
            if t is not None and (t_first is None or t < t_first):
                t_first = t
        if t_first is None:
            return True, None
        return False, a + t_first * (b - a)

    def trajectory_is_free(self, points, headings=None):
        """
        Replay a polyline, returning (True, None) or (False, index of the
        first point whose incoming motion collides).
        """
        points = np.asarray(points, dtype=float)
        if headings is None:
            headings = np.zeros(len(points))
        if not self.is_free(points[0], headings[0]):
            return False, 0
        for i in range(1, len(points)):
            free, _ = self.segment_is_free(points[i - 1], points[i], headings[i - 1], headings[i])
            if not free:
                return False, i
        return True, None
