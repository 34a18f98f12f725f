"""Shared composition documents for scenecompose tests."""

import pytest


TRANSITION_DOC = """import { AbsoluteFill, interpolate, useCurrentFrame } from "remotion";

export const Intro = () => {
  const frame = useCurrentFrame();
  return (
    <AbsoluteFill>
      <AbsoluteFill id="background" style={{ opacity: interpolate(frame, [90, 120], [1, 0]) }} />
      <h1 id="title" style={{ opacity: interpolate(frame, [100, 130], [0, 1]) }}>Hello</h1>
    </AbsoluteFill>
  );
};
"""

BASIC_DOC = """import { AbsoluteFill, useCurrentFrame } from "remotion";

export const Basic = () => {
  const frame = useCurrentFrame();
  return (
    <AbsoluteFill style={{ backgroundColor: "white" }}>
      <h1 style={{ fontSize: 120, marginTop: 300 }}>Hello {frame}</h1>
      <p style={{ width: 600 }}>Plain text</p>
    </AbsoluteFill>
  );
};
"""

PUSH_DOC = """import { AbsoluteFill, useCurrentFrame } from "remotion";

export const Particles = () => {
  const particles = [];
  for (let i = 0; i < 40; i++) {
    particles.push({ x: Math.random() * 800, y: Math.random() * 600, size: 4, label: "p" });
  }
  return (
    <AbsoluteFill>
      {particles.map((p, i) => (
        <div key={i} style={{ left: p.x, top: p.y, width: p.size }} />
      ))}
    </AbsoluteFill>
  );
};
"""

TIMELINE_DOC = """<AbsoluteFill>
  <Sequence id="intro" from={0} durationInFrames={60}>
    <h1 className="title big">Welcome</h1>
  </Sequence>
  <Sequence name="outro" from={60}>
    <p className="caption">Goodbye</p>
  </Sequence>
</AbsoluteFill>
"""


@pytest.fixture
def transition_doc():
    """Fade-out [90, 120] on the background, fade-in [100, 130] on the title."""
    return TRANSITION_DOC


@pytest.fixture
def basic_doc():
    """One component, three numbers, no data, no layers: scores as basic."""
    return BASIC_DOC


@pytest.fixture
def push_doc():
    """A 40-element array filled by push() in a for loop."""
    return PUSH_DOC


@pytest.fixture
def timeline_doc():
    """Two Sequences with id/name, className and text children."""
    return TIMELINE_DOC
