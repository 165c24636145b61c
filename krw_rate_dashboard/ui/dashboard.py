"""Streamlit dashboard for the 30-day USD/KRW trend.

Sections:
- Latest rate card with last update time
- Daily bar chart (Sundays highlighted)
- AI buying-advantage score and on-demand commentary
- Notification preference form (stored only, nothing is sent)
"""

import asyncio
import html
import logging
import math
import threading
from concurrent.futures import TimeoutError as FutureTimeout

import plotly.graph_objects as go
import streamlit as st

from krw_rate_dashboard.config import Settings
from krw_rate_dashboard.data import FrankfurterFetcher, PreferenceStore
from krw_rate_dashboard.errors import AnalysisError
from krw_rate_dashboard.indicators.analysis import GeminiAnalyst
from krw_rate_dashboard.indicators.normalizer import to_frame
from krw_rate_dashboard.indicators.signals import SignalDeriver, advantage_band
from krw_rate_dashboard.models import (
    AdvantageScore,
    DenseSeries,
    NotificationPreferences,
    RefreshState,
    RefreshStatus,
)
from krw_rate_dashboard.scheduler import RefreshScheduler


logger = logging.getLogger(__name__)

SUNDAY_COLOR = "#F87171"
DEFAULT_COLOR = "#2DD4BF"
ANALYSIS_TIMEOUT = 90.0


class LiveFeed:
    """Runs the refresh scheduler on a dedicated event loop thread.

    Streamlit reruns the script on its own threads; they only read
    ``latest``, which is replaced wholesale by the scheduler.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.latest = RefreshState()
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="rate-refresh", daemon=True
        )
        self._thread.start()

        self._fetcher = FrankfurterFetcher(settings)
        self._scheduler = RefreshScheduler.from_settings(self._fetcher, settings)
        self._handle = self.run(self._start(), timeout=5.0)

        self.deriver: SignalDeriver | None = None
        if settings.has_analysis():
            self.deriver = SignalDeriver(GeminiAnalyst(settings))

    async def _start(self):
        return self._scheduler.start(self._on_update)

    def _on_update(self, state: RefreshState) -> None:
        self.latest = state

    def run(self, coro, timeout: float):
        """Run a coroutine on the feed's loop and wait for the result."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

    def retry(self) -> None:
        self._loop.call_soon_threadsafe(self._scheduler.refresh_now)


@st.cache_resource
def get_feed() -> LiveFeed:
    return LiveFeed(Settings())


@st.cache_resource
def get_store() -> PreferenceStore:
    return PreferenceStore(Settings().db_path)


# =============================================================================
# RATE DISPLAY
# =============================================================================

def render_current_rate(state: RefreshState, quote: str) -> None:
    """Render the latest rate card."""
    updated = state.last_updated.strftime("%H:%M:%S") if state.last_updated else "-"
    st.markdown(
        f"""<div style="text-align: center; background: #1e293b; border: 2px solid #06b6d4;
                border-radius: 12px; padding: 1rem; margin-bottom: 1rem;">
            <div style="color: #cbd5e1; font-size: 0.9rem;">최신 환율</div>
            <div style="font-size: 2.5rem; font-weight: 700; color: #ffffff;">
                {state.current_rate:,.2f} <span style="font-size: 1.1rem; color: #94a3b8;">{quote}</span>
            </div>
            <div style="color: #64748b; font-size: 0.75rem;">마지막 업데이트: {updated}</div>
        </div>""",
        unsafe_allow_html=True,
    )


def render_rate_chart(series: DenseSeries, quote: str) -> None:
    """Render one bar per day, Sundays in red."""
    df = to_frame(series)
    min_rate, max_rate = df["rate"].min(), df["rate"].max()
    colors = [SUNDAY_COLOR if wd == 0 else DEFAULT_COLOR for wd in df["weekday"]]

    fig = go.Figure(go.Bar(
        x=df["label"], y=df["rate"],
        marker_color=colors,
        name=f"환율({quote})",
        hovertemplate="날짜: %{x}<br>%{y:,.2f} 원<extra></extra>",
    ))

    tick_labels = [label if i % 5 == 0 else "" for i, label in enumerate(df["label"])]
    fig.update_layout(
        height=320, margin=dict(l=0, r=10, t=10, b=0),
        paper_bgcolor="rgba(0,0,0,0)", plot_bgcolor="rgba(0,0,0,0)",
        showlegend=False,
        xaxis=dict(
            tickmode="array", tickvals=list(df["label"]), ticktext=tick_labels,
            tickfont=dict(color="#A0AEC0", size=10),
        ),
        yaxis=dict(
            range=[math.floor(min_rate / 10) * 10 - 10, math.ceil(max_rate / 10) * 10 + 10],
            gridcolor="#4A5568", tickfont=dict(color="#A0AEC0", size=10),
            title=dict(text=f"원 ({quote})", font=dict(color="#A0AEC0", size=12)),
        ),
    )
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})
    st.caption("■ 평일/토요일  ■ 일요일 (빨간색)")


# =============================================================================
# ANALYSIS
# =============================================================================

def advantage_card_html(result: AdvantageScore) -> str:
    """Score card markup. The reason is model output and is escaped."""
    band = advantage_band(result.score)
    return f"""<div style="background: #0f172a; border-radius: 8px; padding: 0.75rem; text-align: center; margin-bottom: 1rem;">
            <div style="font-size: 1.2rem; font-weight: 700; color: #ffffff;">
                지금 달러를 사는 것이 <span style="color: #22d3ee;">{result.score}%</span> 유리함
            </div>
            <div style="background: #334155; border-radius: 999px; height: 10px; margin: 0.5rem 0; overflow: hidden;">
                <div style="background: {band['color']}; width: {result.score}%; height: 100%;"></div>
            </div>
            <div style="color: #94a3b8; font-size: 0.8rem;">{html.escape(result.reason)}</div>
        </div>"""


def render_advantage(feed: LiveFeed, series: DenseSeries) -> None:
    """Score buying advantage once per distinct series; failures are not retried."""
    if feed.deriver is None or len(series) < 2:
        return

    key = tuple(p.rate for p in series)
    cached = st.session_state.get("advantage")
    if cached is None or cached[0] != key:
        try:
            result: AdvantageScore | str = feed.run(
                feed.deriver.assess(series), timeout=ANALYSIS_TIMEOUT
            )
        except (AnalysisError, FutureTimeout) as e:
            logger.warning(f"Advantage analysis failed: {e}")
            result = "AI 분석에 실패했습니다. 잠시 후 다시 시도해주세요."
        st.session_state["advantage"] = (key, result)
    result = st.session_state["advantage"][1]

    if isinstance(result, str):
        st.markdown(f"<div style='text-align: center; color: #f87171;'>{result}</div>", unsafe_allow_html=True)
        return

    st.markdown(advantage_card_html(result), unsafe_allow_html=True)


def render_narrative(feed: LiveFeed) -> None:
    """User-triggered commentary on the recent movement."""
    st.markdown("### AI 환율 변동 원인 분석")
    if feed.deriver is None:
        st.info("GEMINI_API_KEY is not set; AI analysis is disabled.")
        return

    if st.button("환율 변동 이유 분석하기", disabled=len(feed.latest.series) < 2):
        # read at click time; the live section may have refreshed since this render
        series = feed.latest.series
        with st.spinner("분석 중..."):
            try:
                st.session_state["narrative"] = feed.run(
                    feed.deriver.explain(series), timeout=ANALYSIS_TIMEOUT
                )
                st.session_state.pop("narrative_error", None)
            except (AnalysisError, FutureTimeout) as e:
                logger.warning(f"Narrative analysis failed: {e}")
                st.session_state["narrative_error"] = "환율 변동 원인 분석 중 오류가 발생했습니다."

    if "narrative_error" in st.session_state:
        st.error(st.session_state["narrative_error"])
    elif "narrative" in st.session_state:
        st.markdown(st.session_state["narrative"])


# =============================================================================
# NOTIFICATIONS
# =============================================================================

def render_notification_form(store: PreferenceStore) -> None:
    """Record notification preferences. No email is actually sent."""
    st.markdown("### 이메일 알림 설정")
    prefs = store.load()

    with st.form("notifications"):
        email = st.text_input("이메일 주소", value=prefs.email, placeholder="example@email.com")
        col1, col2 = st.columns(2)
        with col1:
            at_9am = st.checkbox("오전 9시", value=prefs.notify_at_9am)
        with col2:
            at_6pm = st.checkbox("오후 6시", value=prefs.notify_at_6pm)
        submitted = st.form_submit_button("설정 저장")

    if submitted:
        store.save(NotificationPreferences(email=email, notify_at_9am=at_9am, notify_at_6pm=at_6pm))
        st.success("설정이 저장되었습니다!")
    st.caption("참고: 이 기능은 데모용입니다. 실제 이메일은 발송되지 않습니다.")


# =============================================================================
# MAIN APP
# =============================================================================

def render_live_section(feed: LiveFeed) -> None:
    state = feed.latest
    quote = feed.settings.quote_currency

    if state.status is RefreshStatus.LOADING and not state.has_data:
        st.info("Loading...")
        return

    if not state.has_data:
        if state.status is RefreshStatus.FAILED:
            st.error("환율 데이터를 불러오는 데 실패했습니다. 잠시 후 다시 시도해 주세요.")
            if st.button("다시 시도"):
                feed.retry()
        else:
            st.info("No data available.")
        return

    render_advantage(feed, state.series)
    render_current_rate(state, quote)
    render_rate_chart(state.series, quote)
    if state.status is RefreshStatus.FAILED:
        # background refresh failure: keep the last good series
        st.caption(f"Last refresh failed: {state.error}")


def main() -> None:
    """Main dashboard entry point."""
    st.set_page_config(page_title="최근 30일 달러 환율", layout="centered")
    st.markdown(
        """
        <style>
            .stApp { background-color: #111827; }
            .stMarkdown, p, span, label { color: #e2e8f0; }
            h1, h2, h3 { color: #22d3ee !important; }
            #MainMenu, footer { visibility: hidden; }
        </style>
        """,
        unsafe_allow_html=True,
    )

    feed = get_feed()
    st.markdown(
        f"""<div style="text-align: center; margin-bottom: 1rem;">
            <h1 style="margin: 0;">최근 {feed.settings.window_days}일 달러 환율</h1>
            <div style="color: #9ca3af;">USD/KRW 환율 변동 추이 ({feed.settings.refresh_interval:g}초마다 자동 갱신)</div>
        </div>""",
        unsafe_allow_html=True,
    )

    st.fragment(run_every=feed.settings.refresh_interval)(render_live_section)(feed)

    st.markdown("---")
    render_narrative(feed)
    st.markdown("---")
    render_notification_form(get_store())
    st.caption("환율 데이터 출처: frankfurter.app (유럽 중앙은행 고시 환율 기준)")


if __name__ == "__main__":
    main()
