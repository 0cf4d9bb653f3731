# visualization.py

import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection
from matplotlib.patches import Circle as CirclePatch, Polygon as PolygonPatch, Rectangle

from .collision import Circle
from .node_module import EdgeKind

EDGE_COLORS = {
    EdgeKind.CONTROL: "tab:blue",
    EdgeKind.PRIMITIVE: "tab:orange",
}


def plot_obstacles(ax, obstacles):
    for obs in obstacles:
        if isinstance(obs, Circle):
            patch = CirclePatch(obs.center, obs.radius, color="gray", alpha=0.6)
        else:
            patch = PolygonPatch(obs.vertices, closed=True, color="gray", alpha=0.6)
        ax.add_patch(patch)


def plot_snapshot(snapshot, obstacles=(), show_witnesses=False, ax=None):
    """
    Draw a TreeSnapshot: obstacles, tree edges colored by how they were
    propagated, active and inactive nodes, the goal disc and the best path.

    Returns the axes drawn on.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    plot_obstacles(ax, obstacles)

    for kind, color in EDGE_COLORS.items():
        segments = [pts for pts, k in snapshot.edges if k == kind]
        if segments:
            ax.add_collection(LineCollection(segments, colors=color, linewidths=0.5,
                                             alpha=0.7, label=f"{kind.name.lower()} edges"))

    active = snapshot.active
    if len(snapshot.nodes):
        ax.scatter(snapshot.nodes[active, 0], snapshot.nodes[active, 1],
                   s=4, c="tab:blue", label="active")
        ax.scatter(snapshot.nodes[~active, 0], snapshot.nodes[~active, 1],
                   s=4, c="lightgray", label="inactive")

    if show_witnesses and snapshot.witnesses:
        for anchor, rep in snapshot.witnesses:
            ax.plot([anchor[0], rep[0]], [anchor[1], rep[1]], color="tab:green", linewidth=0.5)
        anchors = [w[0] for w in snapshot.witnesses]
        ax.scatter([a[0] for a in anchors], [a[1] for a in anchors],
                   s=6, marker="x", c="tab:green", label="witnesses")

    (x0, x1), (y0, y1) = snapshot.sample_bounds
    ax.add_patch(Rectangle((x0, y0), x1 - x0, y1 - y0, fill=False,
                           linestyle=":", edgecolor="black", linewidth=0.8))
    ax.add_patch(CirclePatch(snapshot.goal_center, snapshot.goal_radius,
                             fill=False, edgecolor="tab:red", linewidth=2))
    ax.plot(*snapshot.start, "go", markersize=8, label="start")

    if snapshot.best_path is not None:
        ax.plot(snapshot.best_path[:, 0], snapshot.best_path[:, 1], "r-", linewidth=2,
                label="best path")

    ax.set_aspect("equal")
    ax.grid(True, alpha=0.3)
    ax.set_xlabel("X Position")
    ax.set_ylabel("Y Position")
    ax.legend(loc="upper left", fontsize="small")
    return ax
