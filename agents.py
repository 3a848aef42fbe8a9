# agents.py
import logging
import math
import random
import time
from collections import deque

import numpy as np

from pacman_rules_interface import Location, Move

logger = logging.getLogger(__name__)

# Plies searched, the root Pac-Man ply included
MAX_DEPTH = 6
# Deducted from a root move that reverses the previous decision
OPPOSITE_MOVE_PENALTY = 10
# Evaluation weights
GOBBLE_SCALING_FACTOR = 5
DOT_DIST_SCALING_FACTOR = 0.2
GHOST_DIST_SCALING_FACTOR = 0.1
GROUP_SCALING_FACTOR = 1
LOSING_SCORE = -5000
WINNING_SCORE = 5000
# Ghosts always pick the worst move for Pac-Man when True, a random one otherwise
OPTIMAL_GHOSTS = True


class Agent:
    """
    Abstract base class for all agents.
    """
    def get_move(self, game):
        """
        Determine the next move.
        Must be overridden by subclasses.

        Parameters:
            game (PacManGame): The running game.

        Returns:
            Move: The move to play.
        """
        raise NotImplementedError("This method should be overridden by subclasses.")


class RandomPacManAgent(Agent):
    def __init__(self, rng=None):
        self.rng = rng if rng is not None else random.Random()

    def get_move(self, game):
        return self.rng.choice(game.get_legal_moves())


class GhostAgent(Agent):
    def get_move(self, game, index):
        """
        Parameters:
            game (PacManGame): The running game.
            index (int): Which ghost is moving.

        Returns:
            Move: The ghost's move.
        """
        raise NotImplementedError("This method should be overridden by subclasses.")


class RandomGhostAgent(GhostAgent):
    def __init__(self, rng=None):
        self.rng = rng if rng is not None else random.Random()

    def get_move(self, game, index):
        return self.rng.choice(game.get_legal_ghost_moves(game.get_current_state(), index))


class ChasingGhostAgent(GhostAgent):
    """Greedy ghost: takes the step that minimises Manhattan distance to Pac-Man."""

    def get_move(self, game, index):
        state = game.get_current_state()
        best_move, best_dist = Move.NONE, math.inf
        for move in game.get_legal_ghost_moves(state, index):
            target = state.maze.neighbour(state.ghosts[index], move) or state.ghosts[index]
            dist = target.manhattan_distance(state.pacman)
            if dist < best_dist:
                best_move, best_dist = move, dist
        return best_move


class StateEvaluator:
    """
    Static evaluation of a cut-off or terminal state, higher is better for Pac-Man.

    Weighted so that Pac-Man is aggressive about eating dots: the ghost distance
    term is small, which works against basic ghosts but would need raising against
    smarter ones.
    """

    def __init__(self, dot_weight=GOBBLE_SCALING_FACTOR,
                 dot_distance_weight=DOT_DIST_SCALING_FACTOR,
                 ghost_distance_weight=GHOST_DIST_SCALING_FACTOR,
                 group_weight=GROUP_SCALING_FACTOR,
                 losing_score=LOSING_SCORE,
                 winning_score=WINNING_SCORE,
                 distance="manhattan"):
        if losing_score + 2 >= winning_score:
            raise ValueError("losing_score must be well below winning_score")
        if distance not in ("manhattan", "euclidean"):
            raise ValueError(f"Unknown distance metric: {distance}")

        self.GOBBLE_SCALING_FACTOR = dot_weight
        self.DOT_DIST_SCALING_FACTOR = dot_distance_weight
        self.GHOST_DIST_SCALING_FACTOR = ghost_distance_weight
        self.GROUP_SCALING_FACTOR = group_weight
        # Finite, so that lines which all lose can still be ranked
        self.LOSING_SCORE = losing_score
        self.WINNING_SCORE = winning_score
        if distance == "manhattan":
            self.distance_to_closest = Location.manhattan_distance_to_closest
        else:
            self.distance_to_closest = Location.euclidean_distance_to_closest

    def evaluate(self, game, state) -> float:
        if game.is_losing(state):
            return self.LOSING_SCORE
        if game.is_winning(state):
            return self.WINNING_SCORE

        score = 0.0
        score -= len(state.dots) * self.GOBBLE_SCALING_FACTOR
        score -= self.distance_to_closest(state.pacman, state.dots) * self.DOT_DIST_SCALING_FACTOR
        score += self.distance_to_closest(state.pacman, state.ghosts) * self.GHOST_DIST_SCALING_FACTOR
        score -= self.structural_penalty(state) * self.GROUP_SCALING_FACTOR

        # Any ongoing state stays strictly between a loss and a win
        return float(np.clip(score, self.LOSING_SCORE + 1, self.WINNING_SCORE - 1))

    def structural_penalty(self, state) -> float:
        """Number of groups the remaining dots form. Override for a real count."""
        return 1


class ClusteredDotsEvaluator(StateEvaluator):
    """Penalises scattered dots by counting the 4-connected clusters they form."""

    def structural_penalty(self, state) -> float:
        remaining = set(state.dots)
        groups = 0
        while remaining:
            groups += 1
            frontier = deque([remaining.pop()])
            while frontier:
                loc = frontier.popleft()
                for move in state.maze.open_moves(loc):
                    nxt = state.maze.neighbour(loc, move)
                    if nxt in remaining:
                        remaining.remove(nxt)
                        frontier.append(nxt)
        return groups


class GhostPlyResolver:
    """
    Produces the joint ghost moves explored at a min-ply.

    With optimal ghosts every legal joint move is returned. Otherwise a single
    joint move is drawn uniformly at random, which only approximates a chance
    node: no expectation over outcomes is taken.
    """

    def __init__(self, optimal=OPTIMAL_GHOSTS, rng=None):
        self.optimal = optimal
        self.rng = rng if rng is not None else random.Random()

    def resolve(self, game, state):
        combined = list(game.get_legal_combined_ghost_moves(state))
        if self.optimal or not combined:
            return combined
        return [self.rng.choice(combined)]


class AlphaBetaPacManAgent(Agent):
    """
    Minimax with alpha-beta pruning over alternating Pac-Man and joint ghost plies.

    Moves that reverse Pac-Man's previous move are skipped inside the tree.
    At the root every legal move is searched and reversing the last decision
    costs OPPOSITE_MOVE_PENALTY.
    """

    def __init__(self, max_depth=MAX_DEPTH,
                 opposite_move_penalty=OPPOSITE_MOVE_PENALTY,
                 optimal_ghosts=OPTIMAL_GHOSTS,
                 dot_weight=GOBBLE_SCALING_FACTOR,
                 dot_distance_weight=DOT_DIST_SCALING_FACTOR,
                 ghost_distance_weight=GHOST_DIST_SCALING_FACTOR,
                 group_weight=GROUP_SCALING_FACTOR,
                 distance="manhattan",
                 evaluator=None,
                 rng=None):
        self.MAX_DEPTH = max_depth
        self.OPPOSITE_MOVE_PENALTY = opposite_move_penalty
        self.evaluator = evaluator if evaluator is not None else StateEvaluator(
            dot_weight=dot_weight,
            dot_distance_weight=dot_distance_weight,
            ghost_distance_weight=ghost_distance_weight,
            group_weight=group_weight,
            distance=distance,
        )
        self.resolver = GhostPlyResolver(optimal=optimal_ghosts, rng=rng)

        self.last_move = Move.NONE
        self.nodes_visited = 0
        self.nodes_cut = 0
        self.last_compute_time = 0.0

    def reset(self):
        self.last_move = Move.NONE

    def get_move(self, game):
        """
        Pick Pac-Man's move for the current tick.

        Parameters:
            game (PacManGame): The running game. Its current state is read once.

        Returns:
            Move: The best move found, or Move.NONE if Pac-Man cannot move.
        """
        start_time = time.time()
        self.nodes_visited = 0
        self.nodes_cut = 0

        current = game.get_current_state()
        best_move = Move.NONE
        best_score = -math.inf

        for move in game.get_legal_pacman_moves(current):
            move_score = self.min_value(
                game,
                game.get_next_state(current, move),
                move,
                -math.inf,
                math.inf,
                self.MAX_DEPTH - 1
            )
            if self.last_move is not Move.NONE and move is self.last_move.opposite:
                move_score -= self.OPPOSITE_MOVE_PENALTY

            if move_score > best_score:
                best_score = move_score
                best_move = move

        self.last_compute_time = time.time() - start_time
        logger.debug(
            f"D: {len(current.dots):03d}, T: {game.get_time()}, P: {game.get_points()}, "
            f"move: {best_move.name} ({best_score:.2f}), nodes: {self.nodes_visited}, "
            f"cut: {self.nodes_cut}, {self.last_compute_time:.3f}s"
        )
        self.last_move = best_move
        return best_move

    def max_value(self, game, state, prev_move, alpha, beta, depth):
        """
        Pac-Man's ply.

        Parameters:
            game: Rules collaborator.
            state (PacManState): State with Pac-Man to move.
            prev_move (Move): Pac-Man's move leading here. Its opposite is skipped.
            alpha (float): Best value guaranteed to the maximiser on this path.
            beta (float): Best value guaranteed to the minimiser on this path.
            depth (int): Remaining plies.

        Returns:
            float: Minimax value of the state.
        """
        self.nodes_visited += 1
        if game.is_final(state) or depth < 1:
            return self.evaluator.evaluate(game, state)

        legal = game.get_legal_pacman_moves(state)
        if not legal:
            return self.evaluator.evaluate(game, state)
        moves = legal
        if prev_move is not Move.NONE:
            moves = [move for move in legal if move is not prev_move.opposite]
            # Dead end: turning back is the only way out
            if not moves:
                moves = legal

        v = -math.inf
        for move in moves:
            v = max(v, self.min_value(game,
                                      game.get_next_state(state, move),
                                      move,
                                      alpha,
                                      beta,
                                      depth - 1))
            if v >= beta:
                self.nodes_cut += 1
                break
            alpha = max(alpha, v)
        return v

    def min_value(self, game, state, prev_move, alpha, beta, depth):
        """
        The ghosts' ply, all ghosts moving at once. `prev_move` is handed
        unchanged to the next Pac-Man ply.
        """
        self.nodes_visited += 1
        if game.is_final(state) or depth < 1:
            return self.evaluator.evaluate(game, state)

        combined = self.resolver.resolve(game, state)
        if not combined:
            return self.evaluator.evaluate(game, state)

        v = math.inf
        for joint_move in combined:
            v = min(v, self.max_value(game,
                                      game.get_next_state_after_ghosts(state, joint_move),
                                      prev_move,
                                      alpha,
                                      beta,
                                      depth - 1))
            if v <= alpha:
                self.nodes_cut += 1
                break
            beta = min(beta, v)
        return v
