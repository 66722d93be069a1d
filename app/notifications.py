"""
Messages that must survive st.rerun() (the page is rebuilt after each action).
"""

import streamlit as st


def notify(success, message):
    st.session_state['notification'] = ('success' if success else 'error', message)


def show_notifications():
    notification = st.session_state.pop('notification', None)
    if not notification:
        return
    kind, message = notification
    if kind == 'success':
        st.success(message)
    else:
        st.error(message)
