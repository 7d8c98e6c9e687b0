"""History walker producing a deterministic newest-first commit order."""

import heapq
from collections.abc import Iterable, Iterator
from pathlib import Path

from commit_extractor.errors import ObjectGraphError
from commit_extractor.git.domain.value_objects import GraphEntry
from commit_extractor.git.repositories.interfaces import GitRepository


class TraversalCursor:
    """
    Frontier and visited set of a walk over a commit graph.

    A commit enters the frontier once every reachable child has been
    visited. The frontier pops the newest committer timestamp first and
    breaks ties by ascending commit hash, so the order is reproducible.
    """

    def __init__(self, entries: Iterable[GraphEntry]) -> None:
        """
        Initialize TraversalCursor.

        Args:
            entries: Every reachable commit, each listed once

        Raises:
            ObjectGraphError: If a commit is listed twice or a parent is missing
        """
        self._nodes: dict[str, GraphEntry] = {}
        for entry in entries:
            if entry.id in self._nodes:
                raise ObjectGraphError(f"Commit {entry.id} listed twice in the commit graph")
            self._nodes[entry.id] = entry

        self._pending_children: dict[str, int] = dict.fromkeys(self._nodes, 0)
        for entry in self._nodes.values():
            for parent in self._distinct_parents(entry):
                if parent not in self._nodes:
                    raise ObjectGraphError(
                        f"Commit {entry.id} references missing parent {parent}"
                    )
                self._pending_children[parent] += 1

        self._frontier: list[tuple[int, str]] = [
            (-self._nodes[commit_hash].timestamp, commit_hash)
            for commit_hash, pending in self._pending_children.items()
            if pending == 0
        ]
        heapq.heapify(self._frontier)
        self._visited: set[str] = set()

    @property
    def total(self) -> int:
        return len(self._nodes)

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        if not self._frontier:
            if len(self._visited) != len(self._nodes):
                raise ObjectGraphError(
                    f"Commit graph walk stopped after {len(self._visited)} "
                    f"of {len(self._nodes)} commits"
                )
            raise StopIteration

        _, commit_hash = heapq.heappop(self._frontier)
        self._visited.add(commit_hash)

        for parent in self._distinct_parents(self._nodes[commit_hash]):
            self._pending_children[parent] -= 1
            if self._pending_children[parent] == 0:
                heapq.heappush(self._frontier, (-self._nodes[parent].timestamp, parent))

        return commit_hash

    @staticmethod
    def _distinct_parents(entry: GraphEntry) -> tuple[str, ...]:
        # A commit may list the same parent twice
        return tuple(dict.fromkeys(entry.parents))


class HistoryWalker:
    """Service enumerating every commit reachable from the head references."""

    def __init__(self, git_repository: GitRepository) -> None:
        """
        Initialize HistoryWalker.

        Args:
            git_repository: Repository implementation for Git operations
        """
        self._git_repository = git_repository

    def start(self, repo_path: Path) -> TraversalCursor:
        """
        Load the reachable commit graph and position a cursor at its newest commits.

        Args:
            repo_path: Path to the git repository

        Returns:
            TraversalCursor yielding each reachable commit hash exactly once,
            children before parents, newest first

        Raises:
            ObjectGraphError: If the graph is corrupt or truncated
        """
        tips = self._git_repository.list_head_refs(repo_path)
        return TraversalCursor(self._git_repository.list_commit_graph(repo_path, tips))

    def walk(self, repo_path: Path) -> Iterator[str]:
        """
        Iterate over every reachable commit hash in walk order.

        Args:
            repo_path: Path to the git repository

        Returns:
            Iterator of commit hashes

        Raises:
            ObjectGraphError: If the graph is corrupt or truncated
        """
        return iter(self.start(repo_path))
