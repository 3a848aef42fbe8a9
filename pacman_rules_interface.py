#pacman_rules_interface.py
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

DOT_POINTS = 10
WIN_BONUS = 500

DEFAULT_LAYOUT = """\
%%%%%%%%%%%%%%%%%%%%
%.........%%.......%
%.%%%.%%%.%%.%%%%%.%
%..................%
%.%%%.%.%%%%.%.%%%.%
......%...G....%....
%.%%%.%.%%%%.%.%%%.%
%.........G........%
%.%%%.%%%.%%.%%%%%.%
%........P.........%
%%%%%%%%%%%%%%%%%%%%"""


class Move(Enum):
    UP = "U"
    DOWN = "D"
    LEFT = "L"
    RIGHT = "R"
    NONE = "-"

    @property
    def opposite(self) -> "Move":
        return _OPPOSITES[self]

    @property
    def delta(self) -> Tuple[int, int]:
        # y grows downwards, like the rows of a layout
        return _DELTAS[self]


_OPPOSITES = {
    Move.UP: Move.DOWN,
    Move.DOWN: Move.UP,
    Move.LEFT: Move.RIGHT,
    Move.RIGHT: Move.LEFT,
    Move.NONE: Move.NONE,
}

_DELTAS = {
    Move.UP: (0, -1),
    Move.DOWN: (0, 1),
    Move.LEFT: (-1, 0),
    Move.RIGHT: (1, 0),
    Move.NONE: (0, 0),
}

DIRECTIONS = (Move.UP, Move.DOWN, Move.LEFT, Move.RIGHT)


@dataclass(frozen=True)
class Location:
    x: int
    y: int

    def manhattan_distance(self, other: "Location") -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)

    def euclidean_distance(self, other: "Location") -> float:
        return float(np.hypot(self.x - other.x, self.y - other.y))

    @staticmethod
    def _as_array(locations: Iterable["Location"]) -> np.ndarray:
        return np.array([(loc.x, loc.y) for loc in locations], dtype=np.int32).reshape(-1, 2)

    @staticmethod
    def manhattan_distance_to_closest(location: "Location", locations: Iterable["Location"]) -> float:
        """Distance to the nearest of `locations`, 0.0 when there are none."""
        points = Location._as_array(locations)
        if points.size == 0:
            return 0.0
        return float(np.min(np.abs(points - (location.x, location.y)).sum(axis=1)))

    @staticmethod
    def euclidean_distance_to_closest(location: "Location", locations: Iterable["Location"]) -> float:
        points = Location._as_array(locations)
        if points.size == 0:
            return 0.0
        diffs = points - (location.x, location.y)
        return float(np.min(np.hypot(diffs[:, 0], diffs[:, 1])))

    @staticmethod
    def closest(location: "Location", locations: Iterable["Location"]) -> Optional["Location"]:
        """
        Nearest location by Manhattan distance. Ties go to the first in iteration order.
        """
        candidates = list(locations)
        if not candidates:
            return None
        distances = np.abs(Location._as_array(candidates) - (location.x, location.y)).sum(axis=1)
        return candidates[int(np.argmin(distances))]


@dataclass(frozen=True)
class Maze:
    width: int
    height: int
    walls: FrozenSet[Location]
    wrap: bool = True

    def is_wall(self, location: Location) -> bool:
        return location in self.walls

    def neighbour(self, location: Location, move: Move) -> Optional[Location]:
        """
        Cell reached from `location` by `move`, or None if it is a wall or off the grid.
        With `wrap` the grid edges behave like tunnels.
        """
        dx, dy = move.delta
        x, y = location.x + dx, location.y + dy
        if self.wrap:
            x %= self.width
            y %= self.height
        elif not (0 <= x < self.width and 0 <= y < self.height):
            return None
        target = Location(x, y)
        if self.is_wall(target):
            return None
        return target

    def open_moves(self, location: Location) -> List[Move]:
        return [move for move in DIRECTIONS if self.neighbour(location, move) is not None]

    @staticmethod
    def from_layout(layout: str, wrap: bool = True) -> Tuple["Maze", "PacManState"]:
        """
        Parse a text layout into a maze and its initial state.

        Parameters:
            layout (str): Rows of '%' (wall), '.' (dot), 'P' (Pac-Man), 'G' (ghost) or ' ' (empty).
            wrap (bool): Whether the grid edges wrap around.

        Returns:
            tuple: (Maze, PacManState)
        """
        rows = layout.splitlines()
        if not rows:
            raise ValueError("Empty layout!")
        width = len(rows[0])
        walls, dots, ghosts = set(), set(), []
        pacman = None
        for y, row in enumerate(rows):
            if len(row) != width:
                raise ValueError(f"Layout row {y} has length {len(row)}, expected {width}")
            for x, char in enumerate(row):
                loc = Location(x, y)
                if char == "%":
                    walls.add(loc)
                elif char == ".":
                    dots.add(loc)
                elif char == "P":
                    if pacman is not None:
                        raise ValueError("Layout has more than one Pac-Man!")
                    pacman = loc
                elif char == "G":
                    ghosts.append(loc)
                elif char != " ":
                    raise ValueError(f"Unknown layout character {char!r} at {loc}")
        if pacman is None:
            raise ValueError("Layout has no Pac-Man!")

        maze = Maze(width=width, height=len(rows), walls=frozenset(walls), wrap=wrap)
        state = PacManState(maze=maze, pacman=pacman, ghosts=tuple(ghosts), dots=frozenset(dots))
        return maze, state


@dataclass(frozen=True)
class PacManState:
    maze: Maze = field(compare=False, repr=False)
    pacman: Location
    ghosts: Tuple[Location, ...]
    dots: FrozenSet[Location]

    def with_pacman_move(self, move: Move) -> "PacManState":
        target = self.pacman if move is Move.NONE else self.maze.neighbour(self.pacman, move)
        if target is None:
            target = self.pacman
        return PacManState(
            maze=self.maze,
            pacman=target,
            ghosts=self.ghosts,
            dots=self.dots - {target},
        )

    def with_ghost_moves(self, joint_move: Tuple[Move, ...]) -> "PacManState":
        ghosts = []
        for ghost, move in zip(self.ghosts, joint_move):
            target = ghost if move is Move.NONE else self.maze.neighbour(ghost, move)
            ghosts.append(ghost if target is None else target)
        return PacManState(maze=self.maze, pacman=self.pacman, ghosts=tuple(ghosts), dots=self.dots)


class PacManGame:
    def __init__(self, maze: Maze, initial_state: PacManState, pacman_agent=None,
                 ghost_agents=None, max_turns: int = 1000, game_id=None):
        self.maze = maze
        self.current_state = initial_state
        self.pacman_agent = pacman_agent
        self.ghost_agents = list(ghost_agents or [])
        if ghost_agents is not None:
            self._check_ghost_agents()
        self.max_turns = max_turns
        self.game_id = game_id
        self.time = 0
        self.points = 0
        self.moves_log = []

    # ------------------------------------------------------------------
    #   Rules, usable on any state
    # ------------------------------------------------------------------
    @staticmethod
    def is_losing(state: PacManState) -> bool:
        return state.pacman in state.ghosts

    @staticmethod
    def is_winning(state: PacManState) -> bool:
        return not state.dots and not PacManGame.is_losing(state)

    @staticmethod
    def is_final(state: PacManState) -> bool:
        return PacManGame.is_losing(state) or PacManGame.is_winning(state)

    @staticmethod
    def get_legal_pacman_moves(state: PacManState) -> List[Move]:
        return state.maze.open_moves(state.pacman) or [Move.NONE]

    @staticmethod
    def get_legal_ghost_moves(state: PacManState, index: int) -> List[Move]:
        # A boxed-in ghost stays put, so the joint move set is never empty
        return state.maze.open_moves(state.ghosts[index]) or [Move.NONE]

    @staticmethod
    def get_legal_combined_ghost_moves(state: PacManState) -> List[Tuple[Move, ...]]:
        per_ghost = [PacManGame.get_legal_ghost_moves(state, i) for i in range(len(state.ghosts))]
        return list(itertools.product(*per_ghost))

    @staticmethod
    def get_next_state(state: PacManState, move: Move) -> PacManState:
        return state.with_pacman_move(move)

    @staticmethod
    def get_next_state_after_ghosts(state: PacManState, joint_move: Tuple[Move, ...]) -> PacManState:
        return state.with_ghost_moves(joint_move)

    # ------------------------------------------------------------------
    #   Live game
    # ------------------------------------------------------------------
    def get_current_state(self) -> PacManState:
        return self.current_state

    def get_legal_moves(self) -> List[Move]:
        return self.get_legal_pacman_moves(self.current_state)

    def get_time(self) -> int:
        return self.time

    def get_points(self) -> int:
        return self.points

    def game_over(self) -> bool:
        return self.is_final(self.current_state) or self.time >= self.max_turns

    def play_move(self, move: Move) -> None:
        if move not in self.get_legal_moves():
            raise ValueError(f"Invalid move {move} from {self.current_state.pacman}!")
        self._advance_pacman(move)

    def play_ghost_moves(self, joint_move: Tuple[Move, ...]) -> None:
        state = self.current_state
        if len(joint_move) != len(state.ghosts):
            raise ValueError(f"Expected {len(state.ghosts)} ghost moves, got {len(joint_move)}")
        for index, move in enumerate(joint_move):
            if move not in self.get_legal_ghost_moves(state, index):
                raise ValueError(f"Invalid move {move} for ghost {index}!")
        self.current_state = state.with_ghost_moves(joint_move)

    def _check_ghost_agents(self) -> None:
        expected = len(self.current_state.ghosts)
        if len(self.ghost_agents) != expected:
            raise ValueError(f"Layout has {expected} ghosts but {len(self.ghost_agents)} ghost agents were given")

    def _collect_ghost_moves(self) -> Tuple[Move, ...]:
        state = self.current_state
        joint_move = []
        for index, agent in enumerate(self.ghost_agents):
            move = agent.get_move(self, index)
            if move not in self.get_legal_ghost_moves(state, index):
                logger.warning(f"Game {self.game_id}, T{self.time}: Invalid move {move} for ghost {index}! "
                               f"Ghost stays put.")
                move = Move.NONE
            joint_move.append(move)
        return tuple(joint_move)

    def _advance_pacman(self, move: Move) -> None:
        before = self.current_state
        self.current_state = before.with_pacman_move(move)
        eaten = len(before.dots) - len(self.current_state.dots)
        self.points += eaten * DOT_POINTS
        if self.is_winning(self.current_state):
            self.points += WIN_BONUS

    def get_winner(self) -> str:
        if self.is_winning(self.current_state):
            return "PacMan"
        if self.is_losing(self.current_state):
            return "Ghosts"
        return "Draw"

    def display_board(self) -> None:
        state = self.current_state
        print(f"\nT{self.time} (points={self.points}, dots={len(state.dots)}):")
        for y in range(self.maze.height):
            row = []
            for x in range(self.maze.width):
                loc = Location(x, y)
                if loc in state.ghosts:
                    row.append("X" if loc == state.pacman else "G")
                elif loc == state.pacman:
                    row.append("P")
                elif self.maze.is_wall(loc):
                    row.append("%")
                elif loc in state.dots:
                    row.append(".")
                else:
                    row.append(" ")
            print("".join(row))

    def run_game(self, display: bool = False) -> str:
        self._check_ghost_agents()
        if display:
            self.display_board()

        while not self.game_over():
            self.time += 1
            state_before_move = self.current_state

            move = self.pacman_agent.get_move(self)
            try:
                self.play_move(move)
            except ValueError as e:
                logger.warning(f"Game {self.game_id}, T{self.time}: {e} Pac-Man stays put.")
                move = Move.NONE
                self._advance_pacman(Move.NONE)

            joint_move = ()
            if not self.is_final(self.current_state):
                joint_move = self._collect_ghost_moves()
                self.current_state = self.current_state.with_ghost_moves(joint_move)

            self.moves_log.append({
                'time': self.time,
                'pacman_before_move': state_before_move.pacman,
                'move': move,
                'ghost_moves': list(joint_move),
                'dots_left': len(self.current_state.dots),
                'points': self.points,
            })

            if display:
                self.display_board()

        winner = self.get_winner()
        logger.info(f"Game {self.game_id} over after {self.time} ticks: {winner} ({self.points} points)")
        return winner

    def get_game_data(self):
        """
        Retrieve all relevant game data for logging.
        """
        return {
            'game_id': self.game_id,
            'pacman_agent': self.pacman_agent.__class__.__name__,
            'ghost_agents': ",".join(agent.__class__.__name__ for agent in self.ghost_agents),
            'moves': self.moves_log,
            'winner': self.get_winner(),
            'points': self.points,
            'dots_left': len(self.current_state.dots),
            'number_of_ticks': self.time,
        }
