import time

import glfw
import moderngl
import numpy as np

from engine.component import Component, Event, EventType
from engine.shaders import BLIT_FRAG, BLIT_VERT
from engine.surface import SkiaSurface
from lib import tlog


class CoreEngine:
    """Hosts the raster surface and delivers the periodic clock pulse.

    With ``headless=True`` no window or GL context is created; the surface
    still exists so components can draw and tests can read pixels back.
    """

    def __init__(self, width=1280, height=720, title="photodrop", headless=False,
                 fill_to_window=False, log_path="photodrop.log"):
        if log_path:
            tlog.init(log_path)
        self.width, self.height = width, height
        self.headless = headless
        self.components: list[Component] = []
        self.last_heartbeat = time.perf_counter()
        self.pulses = 0
        self.pulse_rate = 0.0
        self.window = None
        self.ctx = None
        self.surface = None

        with tlog.Span("engine_startup"):
            tlog.info(f"Initializing engine | Target: {width}x{height} | headless={headless}")

            if headless:
                self.surface = SkiaSurface(width, height)
                tlog.info("Engine Startup Complete (headless)")
                return

            if not glfw.init():
                tlog.err("Critical: GLFW initialization failed")
                raise RuntimeError("GLFW init failed")

            if fill_to_window:
                mode = glfw.get_video_mode(glfw.get_primary_monitor())
                self.width, self.height = mode.size.width, mode.size.height
                tlog.info(f"Filling viewport: {self.width}x{self.height}")

            glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
            glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
            glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)

            self.window = glfw.create_window(self.width, self.height, title, None, None)
            if not self.window:
                tlog.err("Critical: Window creation failed")
                glfw.terminate()
                raise RuntimeError("Window creation failed")

            glfw.make_context_current(self.window)
            glfw.swap_interval(1)
            self._setup_callbacks()

            self.ctx = moderngl.create_context()
            tlog.info(
                f"GPU: {self.ctx.info['GL_RENDERER']} | OpenGL: {self.ctx.info['GL_VERSION']}"
            )

            with tlog.Span("graphics_pipeline_setup"):
                self.surface = SkiaSurface(self.width, self.height)
                self._init_blit_pipeline()

            tlog.info("Engine Startup Complete")

    def _setup_callbacks(self):
        glfw.set_key_callback(self.window, self._on_key)
        glfw.set_framebuffer_size_callback(self.window, self._on_resize)

    def _on_resize(self, window, width, height):
        if width == 0 or height == 0:
            return
        tlog.info(f"Event: Window Resize -> {width}x{height}")
        self.width, self.height = width, height
        self.ctx.viewport = (0, 0, width, height)
        self.surface.resize(width, height)
        self.texture.release()
        self.texture = self.ctx.texture((width, height), 4)
        self._dispatch_event(Event(EventType.RESIZE, width=width, height=height))

    def _init_blit_pipeline(self):
        # Flip V: skia rows run top-down, GL textures bottom-up
        verts = np.array([-1, -1, 0, 1, 1, -1, 1, 1, -1, 1, 0, 0, 1, 1, 1, 0], dtype="f4")
        self.vbo = self.ctx.buffer(verts)
        try:
            self.program = self.ctx.program(vertex_shader=BLIT_VERT, fragment_shader=BLIT_FRAG)
        except moderngl.Error as e:
            tlog.err(f"Blit shader compilation failed: {e}")
            raise
        self.texture = self.ctx.texture((self.width, self.height), 4)
        self.vao = self.ctx.vertex_array(self.program, [(self.vbo, "2f 2f", "in_pos", "in_uv")])

    def _on_key(self, w, k, s, a, m):
        if a != glfw.PRESS:
            return
        if k == glfw.KEY_ESCAPE:
            glfw.set_window_should_close(self.window, True)
        self._dispatch_event(Event(EventType.KEY_PRESS, key=k))

    def _dispatch_event(self, event):
        for comp in reversed(self.components):
            if comp.enabled and comp.on_event(event): break

    def present(self):
        if self.headless:
            return
        self.texture.write(self.surface.to_bytes())
        self.ctx.screen.use()
        self.ctx.clear(0, 0, 0, 1)
        self.texture.use(0)
        self.vao.render(moderngl.TRIANGLE_STRIP)
        glfw.swap_buffers(self.window)

    def add_component(self, comp: Component):
        with tlog.Span(f"mounting_{comp.name}"):
            comp.on_init(self.ctx, self.surface)
            self.components.append(comp)

    def remove_component(self, comp: Component):
        if comp in self.components:
            self.components.remove(comp)
            comp.on_destroy()

    def pulse(self, dt: float):
        self.pulses += 1
        for comp in self.components:
            if comp.enabled: comp.on_update(dt)
        for comp in self.components:
            if comp.enabled: comp.on_render_ui(self.surface)

    def run_heartbeat(self):
        now = time.perf_counter()
        if now - self.last_heartbeat >= 5.0:
            self.pulse_rate = self.pulses / (now - self.last_heartbeat)
            tlog.info(f"Heartbeat: {self.pulse_rate:.1f} pulses/s | Components: {len(self.components)}")
            self.last_heartbeat = now
            self.pulses = 0

    def run(self, tick_interval_ms=50):
        """Pulse every component once per ``tick_interval_ms`` until the window closes."""
        if self.headless:
            raise RuntimeError("A headless engine has no window to run; call pulse() directly")
        interval = tick_interval_ms / 1000.0
        tlog.info(f"Entering main loop | pulse every {tick_interval_ms}ms")
        last = time.perf_counter()
        next_pulse = last
        try:
            while not glfw.window_should_close(self.window):
                now = time.perf_counter()
                if now >= next_pulse:
                    self.pulse(now - last)
                    self.present()
                    last = now
                    next_pulse += interval
                    if next_pulse < now:
                        # Fell behind; don't try to catch up with a burst of pulses
                        next_pulse = now + interval
                glfw.wait_events_timeout(max(0.0, next_pulse - time.perf_counter()))
                self.run_heartbeat()
        finally:
            tlog.info("Shutdown")
            for comp in list(self.components):
                comp.on_destroy()
            glfw.terminate()
